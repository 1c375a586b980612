"""
Service catalog.

The six business-application modules sold by VorniQ. The catalog is static:
ids, keys and routes never change at runtime, and the Access Gate relies on
TOTAL_SERVICES to recognise the all-services bundle.
"""

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Tuple

from vorniq.entitlements.errors import UnknownServiceError


class ServiceId(enum.IntEnum):
    """Stable numeric service identifiers, as stored in subscription rows."""
    CRM = 1
    HRM = 2
    SALES_INVENTORY = 3
    USER_ROLES = 4
    ACCOUNTING = 5
    DASHBOARD = 6


@dataclass(frozen=True)
class ServiceDefinition:
    """Canonical name and routes for one service."""

    id: int
    key: str
    name: str
    description: str

    @property
    def route(self) -> str:
        return f"/{self.key}"

    @property
    def preview_route(self) -> str:
        return f"/preview/{self.key}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "route": self.route,
            "previewRoute": self.preview_route,
        }


SERVICES: Tuple[ServiceDefinition, ...] = (
    ServiceDefinition(
        id=ServiceId.CRM,
        key="crm",
        name="CRM",
        description="Customer database, lead management, sales funnel and follow-ups",
    ),
    ServiceDefinition(
        id=ServiceId.HRM,
        key="hrm",
        name="HRM",
        description="Employee records, attendance, payroll, recruitment and reviews",
    ),
    ServiceDefinition(
        id=ServiceId.SALES_INVENTORY,
        key="sim",
        name="Sales & Inventory",
        description="Products, stock, quotations, invoices and purchase orders",
    ),
    ServiceDefinition(
        id=ServiceId.USER_ROLES,
        key="roles",
        name="User Roles",
        description="Users, roles, permissions and audit logs",
    ),
    ServiceDefinition(
        id=ServiceId.ACCOUNTING,
        key="accounting",
        name="Accounting",
        description="Income and expenses, reconciliation, tax and profit & loss",
    ),
    ServiceDefinition(
        id=ServiceId.DASHBOARD,
        key="dashboard",
        name="Dashboard",
        description="KPIs, sales, expense, profit and HR analytics",
    ),
)

TOTAL_SERVICES = len(SERVICES)

_BY_ID: Mapping[int, ServiceDefinition] = MappingProxyType({s.id: s for s in SERVICES})
_BY_KEY: Mapping[str, ServiceDefinition] = MappingProxyType({s.key: s for s in SERVICES})

ALL_SERVICE_IDS = frozenset(_BY_ID)


def is_valid_service_id(value: object) -> bool:
    """True if value is an int (not a bool) naming a catalog service."""
    return isinstance(value, int) and not isinstance(value, bool) and value in _BY_ID


def get_service(service_id: int) -> ServiceDefinition:
    service = _BY_ID.get(service_id)
    if service is None:
        raise UnknownServiceError(service_id)
    return service


def get_service_by_key(key: str) -> ServiceDefinition:
    service = _BY_KEY.get(str(key).strip().lower())
    if service is None:
        raise UnknownServiceError(key)
    return service
