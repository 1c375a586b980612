"""
Entitlement error hierarchy.

Provides:
- EntitlementError: base for all entitlement failures
- IdentityUnavailableError: provider could not confirm a session
- EntitlementLookupFailedError: subscription store query failed
- MalformedServiceIdListError: stored service id list has bad tokens
- UnknownServiceError: service id or key outside the catalog

None of these cross the resolver boundary. The resolvers recover every one of
them to the signed-out / not-entitled state.
"""

from typing import Optional, Sequence


class EntitlementError(Exception):
    """Base exception for entitlement-related failures."""

    error_code = "ENTITLEMENT_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message}


class IdentityUnavailableError(EntitlementError):
    """Raised when the identity provider cannot confirm a session."""

    error_code = "IDENTITY_UNAVAILABLE"

    def __init__(self, detail: str, cause: Optional[Exception] = None):
        self.detail = detail
        self.cause = cause
        super().__init__(f"Identity unavailable: {detail}")


class EntitlementLookupFailedError(EntitlementError):
    """Raised by a subscription store when the lookup itself failed."""

    error_code = "ENTITLEMENT_LOOKUP_FAILED"

    def __init__(self, owner_key: str, detail: str, cause: Optional[Exception] = None):
        self.owner_key = owner_key
        self.detail = detail
        self.cause = cause
        super().__init__(f"Subscription lookup failed for {owner_key}: {detail}")

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.detail,
            "owner_key": self.owner_key,
        }


class MalformedServiceIdListError(EntitlementError):
    """Raised by strict parsing when a service id list has unparseable tokens."""

    error_code = "MALFORMED_SERVICE_ID_LIST"

    def __init__(self, raw: str, bad_tokens: Sequence[str]):
        self.raw = raw
        self.bad_tokens = tuple(bad_tokens)
        super().__init__(f"Malformed service id list {raw!r}: bad tokens {list(self.bad_tokens)}")

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message, "bad_tokens": list(self.bad_tokens)}


class UnknownServiceError(EntitlementError, KeyError):
    """Raised when a service id or key is not in the catalog."""

    error_code = "UNKNOWN_SERVICE"

    def __init__(self, service: object):
        self.service = service
        super().__init__(f"Unknown service: {service!r}")

    def to_dict(self) -> dict:
        return {"error": self.error_code, "message": self.message, "service": self.service}

    def __str__(self) -> str:
        return self.message
