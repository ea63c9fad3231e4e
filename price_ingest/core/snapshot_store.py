"""Snapshot slot stores: in-process and Redis-backed.

A pipeline uses three independent stores (staging, production, backup).
Each holds zero or one snapshot and exposes async read/write/clear. Both
backings hand out copies, so mutating a returned snapshot never changes
stored state.
"""

import logging
from typing import Optional, Protocol

from pydantic import BaseModel, ValidationError
from redis.asyncio import Redis

from price_ingest.core import redis_client
from price_ingest.core.config import settings

logger = logging.getLogger(__name__)

SLOT_NAMES = ("staging", "production", "backup")


class SnapshotStore(Protocol):
    async def read(self) -> Optional[BaseModel]: ...

    async def write(self, snapshot: BaseModel) -> None: ...

    async def clear(self) -> None: ...


class InMemorySnapshotStore:
    """Process-lifetime slot; deep-copies on every read and write."""

    def __init__(self, key: str):
        self.key = key
        self._value: Optional[BaseModel] = None

    async def read(self) -> Optional[BaseModel]:
        if self._value is None:
            return None
        return self._value.model_copy(deep=True)

    async def write(self, snapshot: BaseModel) -> None:
        self._value = snapshot.model_copy(deep=True)

    async def clear(self) -> None:
        self._value = None


class RedisSnapshotStore:
    """Durable slot stored as one JSON string key in Redis.

    A value that no longer decodes into ``snapshot_model`` reads as empty;
    re-staging overwrites it.
    """

    def __init__(
        self,
        key: str,
        snapshot_model: type[BaseModel],
        client: Optional[Redis] = None,
        key_prefix: Optional[str] = None,
    ):
        prefix = key_prefix if key_prefix is not None else settings.snapshot_key_prefix
        self.key = f"{prefix}:{key}" if prefix else key
        self._model = snapshot_model
        self._client = client

    @property
    def client(self) -> Redis:
        return self._client or redis_client.get_redis_client()

    async def read(self) -> Optional[BaseModel]:
        raw = await self.client.get(self.key)
        if not raw:
            return None
        try:
            return self._model.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable snapshot at {self.key}: {e.error_count()} errors")
            return None

    async def write(self, snapshot: BaseModel) -> None:
        await self.client.set(self.key, snapshot.model_dump_json(by_alias=True))

    async def clear(self) -> None:
        await self.client.delete(self.key)


def create_snapshot_store(
    key: str,
    snapshot_model: type[BaseModel],
    backend: Optional[str] = None,
) -> SnapshotStore:
    """Build a slot store for ``key`` using the configured backend."""
    backend = backend or settings.snapshot_backend
    if backend == "memory":
        return InMemorySnapshotStore(key)
    if backend == "redis":
        return RedisSnapshotStore(key, snapshot_model)
    raise ValueError(f"Unknown snapshot backend: '{backend}' (expected 'memory' or 'redis')")


def create_slot_stores(
    name: str,
    snapshot_model: type[BaseModel],
    backend: Optional[str] = None,
) -> dict[str, SnapshotStore]:
    """Build the staging/production/backup trio named ``{name}-{slot}``."""
    return {
        slot: create_snapshot_store(f"{name}-{slot}", snapshot_model, backend)
        for slot in SLOT_NAMES
    }
