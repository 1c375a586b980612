"""
Tests for the HTTP identity provider.
"""

import httpx
import pytest

from vorniq.entitlements.errors import IdentityUnavailableError
from vorniq.identity.provider import HttpIdentityProvider

USER_PAYLOAD = {
    "id": "5f0c-user",
    "email": "owner@acme.in",
    "user_metadata": {"full_name": "Asha Rao", "avatar_url": "https://cdn.example/a.png"},
}


def _provider(handler, access_token="token-abc"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpIdentityProvider(
        "https://auth.example.com/",
        api_key="anon-key",
        access_token=access_token,
        client=client,
    )


class TestGetCurrentPrincipal:
    @pytest.mark.asyncio
    async def test_returns_principal(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json=USER_PAYLOAD)

        principal = await _provider(handler).get_current_principal()

        assert principal.id == "5f0c-user"
        assert principal.email == "owner@acme.in"
        assert principal.display_name == "Asha Rao"
        assert principal.avatar_url == "https://cdn.example/a.png"
        assert seen == {
            "url": "https://auth.example.com/auth/v1/user",
            "auth": "Bearer token-abc",
            "apikey": "anon-key",
        }

    @pytest.mark.asyncio
    async def test_no_token_means_no_session(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert await _provider(handler, access_token=None).get_current_principal() is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_rejected_token_means_no_session(self, status_code):
        provider = _provider(lambda request: httpx.Response(status_code, json={"msg": "invalid JWT"}))
        assert await provider.get_current_principal() is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        provider = _provider(lambda request: httpx.Response(500))
        with pytest.raises(IdentityUnavailableError):
            await provider.get_current_principal()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(IdentityUnavailableError):
            await _provider(handler).get_current_principal()

    @pytest.mark.asyncio
    async def test_incomplete_user_raises(self):
        provider = _provider(lambda request: httpx.Response(200, json={"id": "x"}))
        with pytest.raises(IdentityUnavailableError):
            await provider.get_current_principal()


class TestSignOut:
    @pytest.mark.asyncio
    async def test_sign_out_posts_logout_and_drops_token(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(204)

        provider = _provider(handler)
        await provider.sign_out()
        assert seen == [("POST", "/auth/v1/logout")]
        assert provider.access_token is None

    @pytest.mark.asyncio
    async def test_failed_sign_out_raises_but_drops_token(self):
        provider = _provider(lambda request: httpx.Response(502))
        with pytest.raises(httpx.HTTPStatusError):
            await provider.sign_out()
        assert provider.access_token is None
