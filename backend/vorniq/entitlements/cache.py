from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Dict, Optional

import redis

from .models import EntitlementState

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = 1


class SubscriptionStatusCache:
    """
    Redis-backed subscription status cache with in-memory fallback.

    Redis round trips run in a worker thread so the event loop never blocks
    on the network. A corrupt or foreign entry reads as a miss.
    """

    def __init__(self, redis_url: Optional[str] = None, ttl_seconds: int = 300) -> None:
        self._ttl_seconds = ttl_seconds
        self._redis = None
        # key -> (expires at, monotonic clock; encoded state)
        self._mem: Dict[str, tuple[float, dict]] = {}

        if redis_url:
            try:
                client = redis.from_url(redis_url, decode_responses=True)
                client.ping()
                self._redis = client
            except redis.RedisError as e:
                logger.warning("Redis unavailable, using in-memory status cache", extra={"error": str(e)})
                self._redis = None

    @property
    def uses_redis(self) -> bool:
        return self._redis is not None

    @staticmethod
    def _require_owner_id(owner_id: str) -> str:
        normalized = str(owner_id).strip()
        if not normalized:
            raise ValueError("owner_id is required")
        return normalized

    @staticmethod
    def _key(owner_id: str) -> str:
        return f"subscription_status:v{CACHE_SCHEMA_VERSION}:{owner_id}"

    async def get(self, owner_id: str) -> Optional[EntitlementState]:
        key = self._key(self._require_owner_id(owner_id))

        if self._redis is not None:
            try:
                raw = await asyncio.to_thread(self._redis.get, key)
            except redis.RedisError as e:
                logger.warning("Status cache read failed", extra={"error": str(e)})
                return None
            if not raw:
                return None
            try:
                return _decode_state(json.loads(raw))
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Discarding unreadable status cache entry", extra={"key": key, "error": str(e)})
                return None

        entry = self._mem.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if time.monotonic() >= expires_at:
            self._mem.pop(key, None)
            return None
        return _decode_state(payload)

    async def set(self, owner_id: str, state: EntitlementState, *, ttl_seconds: Optional[int] = None) -> None:
        key = self._key(self._require_owner_id(owner_id))
        if state.is_loading:
            return
        ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            return
        payload = _encode_state(state)

        if self._redis is not None:
            try:
                await asyncio.to_thread(self._redis.setex, key, ttl, json.dumps(payload))
            except redis.RedisError as e:
                logger.warning("Status cache write failed", extra={"error": str(e)})
            return

        now = time.monotonic()
        self._prune(now)
        self._mem[key] = (now + ttl, payload)

    async def invalidate(self, owner_id: str) -> None:
        key = self._key(self._require_owner_id(owner_id))
        if self._redis is not None:
            try:
                await asyncio.to_thread(self._redis.delete, key)
            except redis.RedisError as e:
                logger.warning("Status cache invalidation failed", extra={"error": str(e)})
        self._mem.pop(key, None)

    def _prune(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._mem.items() if now >= expires_at]
        for key in expired:
            del self._mem[key]

    def __len__(self) -> int:
        return len(self._mem)


def _encode_state(state: EntitlementState) -> dict:
    return {
        "schema_version": CACHE_SCHEMA_VERSION,
        "is_active": state.is_active,
        "unlocked_service_ids": sorted(state.unlocked_service_ids),
    }


def _decode_state(raw: dict) -> Optional[EntitlementState]:
    if int(raw.get("schema_version", CACHE_SCHEMA_VERSION)) != CACHE_SCHEMA_VERSION:
        # Written by another release; treat as a miss
        return None
    is_active = bool(raw["is_active"])
    return EntitlementState(
        is_active=is_active,
        unlocked_service_ids=frozenset(int(i) for i in raw["unlocked_service_ids"]) if is_active else frozenset(),
        is_loading=False,
    )
