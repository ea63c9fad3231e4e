"""Shared test fixtures for the price ingestion test suite."""

import asyncio
from datetime import date, datetime, timezone
from typing import Optional

import pytest

from price_ingest.core.audit import AuditTrail
from price_ingest.core.ingestion_service import BENCHMARK_KIND, MERCHANT_KIND, IngestionService
from price_ingest.core.models import BenchmarkPriceRecord, MerchantPriceRecord, Snapshot
from price_ingest.core.snapshot_store import InMemorySnapshotStore

BENCHMARK_HEADER = "Item Name,Category,Average Price,Source Label,Last Updated"
MERCHANT_HEADER = "SKU,Item Name,Unit,Category,Price,Last Updated"


def benchmark_csv(*rows: str) -> str:
    return "\n".join([BENCHMARK_HEADER, *rows])


def merchant_csv(*rows: str) -> str:
    return "\n".join([MERCHANT_HEADER, *rows])


def make_benchmark_record(
    item_name: str = "Cement 50kg",
    category: str = "Building Materials",
    average_price: float = 180.0,
    source_label: str = "ZPPA 2025 Q1",
    last_updated: date = date(2025, 3, 31),
) -> BenchmarkPriceRecord:
    return BenchmarkPriceRecord(
        item_name=item_name,
        category=category,
        average_price=average_price,
        source_label=source_label,
        last_updated=last_updated,
    )


def make_merchant_record(
    sku: str = "1001",
    price: float = 180.0,
    item_name: str = "Cement 50kg",
    unit: str = "Bag",
    category: str = "Building Materials",
    pack_size: Optional[str] = None,
    last_updated: Optional[date] = None,
) -> MerchantPriceRecord:
    return MerchantPriceRecord(
        sku=sku,
        item_name=item_name,
        unit=unit,
        category=category,
        price=price,
        pack_size=pack_size,
        last_updated=last_updated,
    )


def make_snapshot(records: list, actor_id: str = "admin-1") -> Snapshot:
    return Snapshot[type(records[0]) if records else BenchmarkPriceRecord](
        data=records,
        staged_at=datetime(2025, 4, 1, tzinfo=timezone.utc),
        actor_id=actor_id,
    )


class RecordingStore(InMemorySnapshotStore):
    """In-memory slot that yields on every call and logs (key, op) to a shared list."""

    def __init__(self, key: str, log: list):
        super().__init__(key)
        self.log = log

    async def read(self):
        await asyncio.sleep(0)
        self.log.append((self.key, "read"))
        return await super().read()

    async def write(self, snapshot):
        await asyncio.sleep(0)
        self.log.append((self.key, "write"))
        await super().write(snapshot)

    async def clear(self):
        await asyncio.sleep(0)
        self.log.append((self.key, "clear"))
        await super().clear()


def build_service(kind, audit_hook=None, log: Optional[list] = None) -> IngestionService:
    """Service over fresh in-memory slots (recording ones when ``log`` is given)."""
    name = kind.dataset.value
    if log is not None:
        stores = {slot: RecordingStore(slot, log) for slot in ("staging", "production", "backup")}
    else:
        stores = {slot: InMemorySnapshotStore(f"{name}-{slot}") for slot in ("staging", "production", "backup")}
    return IngestionService(
        kind,
        staging=stores["staging"],
        production=stores["production"],
        backup=stores["backup"],
        audit_hook=audit_hook,
    )


@pytest.fixture
def audit_trail():
    return AuditTrail()


@pytest.fixture
def benchmark_service(audit_trail):
    return build_service(BENCHMARK_KIND, audit_trail)


@pytest.fixture
def merchant_service(audit_trail):
    return build_service(MERCHANT_KIND, audit_trail)
