"""
Identity resolution.

- Principal / IdentityState: the published identity
- IdentityProvider, HttpIdentityProvider: the external auth server
- PrincipalSnapshotStore: local fast-path hint for initial paint
- IdentityResolver: owns the principal and notifies subscribers
- decode_principal: access-token decoding for the backend API
"""

from vorniq.identity.models import IDENTITY_LOADING, SIGNED_OUT, IdentityState, Principal
from vorniq.identity.provider import HttpIdentityProvider, IdentityProvider
from vorniq.identity.resolver import IdentityResolver
from vorniq.identity.snapshot import (
    FilePrincipalSnapshotStore,
    InMemoryPrincipalSnapshotStore,
    PrincipalSnapshotStore,
)
from vorniq.identity.tokens import decode_principal

__all__ = [
    "IDENTITY_LOADING",
    "SIGNED_OUT",
    "IdentityState",
    "Principal",
    "HttpIdentityProvider",
    "IdentityProvider",
    "IdentityResolver",
    "FilePrincipalSnapshotStore",
    "InMemoryPrincipalSnapshotStore",
    "PrincipalSnapshotStore",
    "decode_principal",
]
