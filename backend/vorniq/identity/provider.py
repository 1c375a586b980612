"""
Identity provider clients.

Handles:
- Confirming the current session with the external auth server
- Best-effort session termination

The auth server speaks the Supabase GoTrue shape:
GET {base}/auth/v1/user and POST {base}/auth/v1/logout, bearer access token.
"""

import logging
from typing import Optional, Protocol

import httpx

from vorniq.entitlements.errors import IdentityUnavailableError
from vorniq.identity.models import Principal

logger = logging.getLogger(__name__)

USER_PATH = "/auth/v1/user"
LOGOUT_PATH = "/auth/v1/logout"


class IdentityProvider(Protocol):
    """Interface of the external identity provider."""

    async def get_current_principal(self) -> Optional[Principal]:
        ...

    async def sign_out(self) -> None:
        ...


class HttpIdentityProvider:
    """
    Identity provider backed by an HTTP auth server.

    Holds the session's access token. A missing token or a 401/403 answer
    means "no session"; transport errors and other statuses raise
    IdentityUnavailableError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._access_token = access_token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def set_access_token(self, access_token: Optional[str]) -> None:
        self._access_token = access_token

    def _headers(self) -> dict:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        if self.api_key:
            headers["apikey"] = self.api_key
        return headers

    async def get_current_principal(self) -> Optional[Principal]:
        if not self._access_token:
            return None

        try:
            response = await self._client.get(f"{self.base_url}{USER_PATH}", headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("Identity provider unreachable", extra={"error": str(e)})
            raise IdentityUnavailableError(f"provider unreachable: {e}", cause=e) from e

        if response.status_code in (401, 403):
            logger.info("Identity provider reports no session", extra={"status_code": response.status_code})
            return None
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error("Identity provider error", extra={"status_code": response.status_code})
            raise IdentityUnavailableError(f"provider returned {response.status_code}", cause=e) from e

        data = response.json()
        metadata = data.get("user_metadata") or {}
        try:
            return Principal(
                id=data.get("id") or "",
                email=data.get("email") or "",
                display_name=metadata.get("full_name") or metadata.get("name"),
                avatar_url=metadata.get("avatar_url") or metadata.get("picture"),
            )
        except ValueError as e:
            raise IdentityUnavailableError("provider returned an incomplete user", cause=e) from e

    async def sign_out(self) -> None:
        if not self._access_token:
            return
        try:
            response = await self._client.post(f"{self.base_url}{LOGOUT_PATH}", headers=self._headers())
            response.raise_for_status()
            logger.info("Identity provider session terminated")
        finally:
            self._access_token = None

    async def aclose(self) -> None:
        await self._client.aclose()
