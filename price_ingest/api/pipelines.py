"""Pipeline wiring for embedding applications.

Builds the benchmark and merchant services with default slot stores named
from settings, and manages the Redis connection when the durable backing
is selected.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from price_ingest.api.import_state import ImportController
from price_ingest.core import redis_client
from price_ingest.core.audit import AuditHook
from price_ingest.core.config import settings
from price_ingest.core.ingestion_service import (
    BENCHMARK_KIND,
    MERCHANT_KIND,
    IngestionService,
    RecordKind,
)
from price_ingest.core.models import DatasetKind
from price_ingest.core.snapshot_store import create_slot_stores

logger = logging.getLogger(__name__)


def _build_service(
    kind: RecordKind,
    store_name: str,
    audit_hook: Optional[AuditHook],
    backend: Optional[str],
) -> IngestionService:
    stores = create_slot_stores(store_name, kind.snapshot_model, backend)
    return IngestionService(
        kind,
        staging=stores["staging"],
        production=stores["production"],
        backup=stores["backup"],
        audit_hook=audit_hook,
    )


def build_benchmark_service(
    audit_hook: Optional[AuditHook] = None,
    backend: Optional[str] = None,
) -> IngestionService:
    """Benchmark (ZPPA) price list pipeline."""
    return _build_service(BENCHMARK_KIND, settings.benchmark_dataset, audit_hook, backend)


def build_merchant_service(
    audit_hook: Optional[AuditHook] = None,
    backend: Optional[str] = None,
    merchant_id: Optional[str] = None,
) -> IngestionService:
    """Merchant price list pipeline; one slot trio per merchant when ``merchant_id`` is given."""
    store_name = settings.merchant_dataset
    if merchant_id:
        store_name = f"{store_name}-{merchant_id}"
    return _build_service(MERCHANT_KIND, store_name, audit_hook, backend)


def build_service(
    dataset: DatasetKind,
    audit_hook: Optional[AuditHook] = None,
    backend: Optional[str] = None,
) -> IngestionService:
    if dataset == DatasetKind.ZPPA:
        return build_benchmark_service(audit_hook, backend)
    return build_merchant_service(audit_hook, backend)


def build_controller(service: IngestionService) -> ImportController:
    return ImportController(service)


@asynccontextmanager
async def redis_lifespan():
    """Open the Redis client for the duration of the block when it is the configured backing."""
    uses_redis = settings.snapshot_backend == "redis"
    if uses_redis:
        redis_client.init_redis_client()
        if not await redis_client.check_connection():
            logger.error(f"Redis at {settings.redis_host}:{settings.redis_port} is unreachable")
    try:
        yield
    finally:
        if uses_redis:
            await redis_client.close_redis_client()
