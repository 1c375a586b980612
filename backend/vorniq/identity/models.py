from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class Principal:
    """The authenticated actor, as asserted by the identity provider."""

    id: str
    email: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    def __post_init__(self) -> None:
        principal_id = str(self.id).strip()
        email = str(self.email).strip()
        if not principal_id:
            raise ValueError("id is required")
        if not email:
            raise ValueError("email is required")
        object.__setattr__(self, "id", principal_id)
        object.__setattr__(self, "email", email)

    def same_identity(self, other: Optional["Principal"]) -> bool:
        """Presentation attributes are ignored; only id and email matter."""
        return other is not None and other.id == self.id and other.email == self.email

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.display_name,
            "photoURL": self.avatar_url,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Principal":
        return cls(
            id=raw["id"],
            email=raw["email"],
            display_name=raw.get("name"),
            avatar_url=raw.get("photoURL"),
        )


@dataclass(frozen=True)
class IdentityState:
    """Published identity: still loading, or resolved to a principal or to nobody."""

    is_loading: bool
    principal: Optional[Principal] = None

    @property
    def is_authenticated(self) -> bool:
        return not self.is_loading and self.principal is not None


IDENTITY_LOADING = IdentityState(is_loading=True, principal=None)
SIGNED_OUT = IdentityState(is_loading=False, principal=None)


def same_identity(a: Optional[Principal], b: Optional[Principal]) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return a.same_identity(b)
