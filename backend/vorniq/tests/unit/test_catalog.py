"""
Tests for the service catalog.
"""

import pytest

from vorniq.entitlements.catalog import (
    ALL_SERVICE_IDS,
    SERVICES,
    TOTAL_SERVICES,
    ServiceId,
    get_service,
    get_service_by_key,
    is_valid_service_id,
)
from vorniq.entitlements.errors import UnknownServiceError


class TestCatalog:
    def test_six_services_in_id_order(self):
        assert TOTAL_SERVICES == 6
        assert [s.id for s in SERVICES] == [1, 2, 3, 4, 5, 6]
        assert ALL_SERVICE_IDS == frozenset(range(1, 7))

    def test_routes_follow_keys(self):
        crm = get_service(ServiceId.CRM)
        assert crm.route == "/crm"
        assert crm.preview_route == "/preview/crm"
        assert get_service(ServiceId.SALES_INVENTORY).name == "Sales & Inventory"

    def test_lookup_by_key_is_case_insensitive(self):
        assert get_service_by_key(" Accounting ").id == ServiceId.ACCOUNTING

    def test_unknown_id_raises(self):
        with pytest.raises(UnknownServiceError):
            get_service(7)

    def test_unknown_key_raises_key_error(self):
        with pytest.raises(KeyError):
            get_service_by_key("payroll")

    @pytest.mark.parametrize("value", [1, 6, ServiceId.DASHBOARD])
    def test_valid_ids(self, value):
        assert is_valid_service_id(value) is True

    @pytest.mark.parametrize("value", [0, 7, -1, True, "1", None, 1.0])
    def test_invalid_ids(self, value):
        assert is_valid_service_id(value) is False

    def test_to_dict_shape(self):
        assert get_service(2).to_dict() == {
            "id": 2,
            "key": "hrm",
            "name": "HRM",
            "description": get_service(2).description,
            "route": "/hrm",
            "previewRoute": "/preview/hrm",
        }
