"""
Access-token decoding.

Turns a provider-issued JWT into a Principal for server-side request handling.
Tokens are HS256 by default (shared secret with the auth server).
"""

import logging
from typing import Any, Dict

import jwt

from vorniq.config import Settings
from vorniq.entitlements.errors import IdentityUnavailableError
from vorniq.identity.models import Principal

logger = logging.getLogger(__name__)


def decode_claims(token: str, settings: Settings) -> Dict[str, Any]:
    """Verify signature, expiry and (when configured) audience."""
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError as e:
        logger.info("Access token expired")
        raise IdentityUnavailableError("token expired", cause=e) from e
    except jwt.InvalidTokenError as e:
        logger.info("Access token rejected", extra={"error": str(e)})
        raise IdentityUnavailableError("invalid token", cause=e) from e


def principal_from_claims(claims: Dict[str, Any]) -> Principal:
    metadata = claims.get("user_metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    user_id = claims.get("sub")
    email = claims.get("email")
    if not user_id or not email:
        logger.info(
            "Access token missing identity claims",
            extra={"has_sub": bool(user_id), "has_email": bool(email)},
        )
        raise IdentityUnavailableError("token missing required claims")
    return Principal(
        id=str(user_id),
        email=str(email),
        display_name=metadata.get("full_name") or metadata.get("name"),
        avatar_url=metadata.get("avatar_url") or metadata.get("picture"),
    )


def decode_principal(token: str, settings: Settings) -> Principal:
    return principal_from_claims(decode_claims(token, settings))
