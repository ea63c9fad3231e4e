"""Ingestion Service: stage, diff, promote and roll back price datasets.

One generic service handles every record kind. A RecordKind supplies the
row validator, the natural-key function and an optional price guard; the
merchant kind is the only one with a guard.

Slot lifecycle:
1. stage_csv: parse + validate; on success write the staging slot
2. promote: copy production into backup, write staging data as the new
   production snapshot, then clear staging
3. rollback: write backup into production (backup itself is kept)

Validation failures are returned in the StageResult. Missing staging or
backup raises. Each service instance serializes its mutating operations
on one asyncio lock.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Generic, Optional, TypeVar

from price_ingest.core.audit import AuditHook, build_audit_event, emit_audit, utc_now
from price_ingest.core.csv_parser import parse_csv
from price_ingest.core.diff import DiffResult, diff_by_key
from price_ingest.core.models import (
    AuditAction,
    BenchmarkPriceRecord,
    DatasetKind,
    MerchantPriceRecord,
    PriceVariance,
    Snapshot,
    ValidationIssue,
)
from price_ingest.core.price_guard import evaluate_price_guards
from price_ingest.core.snapshot_store import SnapshotStore, create_slot_stores
from price_ingest.core.validators import (
    RowValidator,
    validate_benchmark_rows,
    validate_merchant_rows,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

PriceGuard = Callable[[list, list], list[PriceVariance]]


class IngestionError(RuntimeError):
    """A pipeline operation could not run in the current slot state."""


class NothingToPromoteError(IngestionError):
    pass


class NothingToRollBackError(IngestionError):
    pass


class StaleStagingError(IngestionError):
    """Staging was rewritten after the caller reviewed it."""


@dataclass(frozen=True)
class RecordKind(Generic[R]):
    """Everything that differs between the benchmark and merchant pipelines."""
    dataset: DatasetKind
    label: str
    record_model: type
    validate: RowValidator
    key_of: Callable[[R], str]
    price_guard: Optional[PriceGuard] = None

    @property
    def snapshot_model(self) -> type[Snapshot]:
        return Snapshot[self.record_model]


def benchmark_key(record: BenchmarkPriceRecord) -> str:
    return f"{record.item_name}::{record.category}"


def merchant_key(record: MerchantPriceRecord) -> str:
    return record.sku


BENCHMARK_KIND: RecordKind[BenchmarkPriceRecord] = RecordKind(
    dataset=DatasetKind.ZPPA,
    label="ZPPA dataset",
    record_model=BenchmarkPriceRecord,
    validate=validate_benchmark_rows,
    key_of=benchmark_key,
)

MERCHANT_KIND: RecordKind[MerchantPriceRecord] = RecordKind(
    dataset=DatasetKind.MERCHANT,
    label="merchant price list",
    record_model=MerchantPriceRecord,
    validate=validate_merchant_rows,
    key_of=merchant_key,
    price_guard=evaluate_price_guards,
)


@dataclass
class StageResult(Generic[R]):
    """Result of a stage attempt.

    ``requires_override`` is advisory; staging succeeds regardless.
    """
    success: bool
    issues: list[ValidationIssue] = field(default_factory=list)
    snapshot: Optional[Snapshot] = None
    diff: Optional[DiffResult[R]] = None
    price_alerts: list[PriceVariance] = field(default_factory=list)
    requires_override: bool = False


class IngestionService(Generic[R]):
    """Staged ingestion pipeline for one record kind."""

    def __init__(
        self,
        kind: RecordKind[R],
        staging: Optional[SnapshotStore] = None,
        production: Optional[SnapshotStore] = None,
        backup: Optional[SnapshotStore] = None,
        audit_hook: Optional[AuditHook] = None,
        store_name: Optional[str] = None,
    ):
        self.kind = kind
        defaults: dict[str, SnapshotStore] = {}
        if staging is None or production is None or backup is None:
            defaults = create_slot_stores(store_name or kind.dataset.value, kind.snapshot_model)
        self.staging = staging if staging is not None else defaults["staging"]
        self.production = production if production is not None else defaults["production"]
        self.backup = backup if backup is not None else defaults["backup"]
        self.audit_hook = audit_hook
        self._lock = asyncio.Lock()

    @property
    def dataset(self) -> DatasetKind:
        return self.kind.dataset

    async def stage_csv(self, content: str, actor_id: str) -> StageResult[R]:
        """Parse, validate and stage a CSV upload.

        An invalid file leaves any previously staged snapshot in place.
        """
        rows = parse_csv(content)
        validation = self.kind.validate(rows)

        if not validation.valid:
            logger.info(
                f"Rejected {self.dataset.value} upload from {actor_id}: "
                f"{len(validation.issues)} issues across {len(rows)} rows"
            )
            return StageResult(success=False, issues=validation.issues)

        async with self._lock:
            snapshot = self.kind.snapshot_model(
                data=validation.data,
                staged_at=utc_now(),
                actor_id=actor_id,
            )
            await self.staging.write(snapshot)
            await self._audit(AuditAction.STAGE, actor_id, snapshot.staged_at, len(snapshot.data))

            diff = await self.diff_with_production(validation.data)
            price_alerts = await self._evaluate_price_guards(validation.data)

        logger.info(
            f"Staged {len(snapshot.data)} {self.dataset.value} rows by {actor_id} "
            f"({snapshot.snapshot_id}): {diff.summary()}"
        )
        if price_alerts:
            logger.warning(
                f"{len(price_alerts)} {self.dataset.value} price changes exceed the guard threshold "
                f"in {snapshot.snapshot_id}"
            )

        return StageResult(
            success=True,
            snapshot=snapshot,
            diff=diff,
            price_alerts=price_alerts,
            requires_override=bool(price_alerts),
        )

    async def diff_with_production(self, next_data: Optional[list[R]] = None) -> DiffResult[R]:
        """Diff ``next_data`` (or the staged data) against production. Read-only."""
        production = await self.production.read()
        current = production.data if production is not None else []
        if next_data is None:
            staged = await self.staging.read()
            next_data = staged.data if staged is not None else []
        return diff_by_key(current, next_data, self.kind.key_of)

    async def promote(self, actor_id: str, expected_snapshot_id: Optional[str] = None) -> Snapshot:
        """Make the staged snapshot live.

        Args:
            actor_id: The promoting actor; recorded on the new production snapshot.
            expected_snapshot_id: When given, refuse unless staging still holds
                this snapshot.

        Raises:
            NothingToPromoteError: Staging is empty.
            StaleStagingError: Staging no longer holds ``expected_snapshot_id``.
        """
        async with self._lock:
            # Step 1: Read staging
            staged = await self.staging.read()
            if staged is None:
                raise NothingToPromoteError(f"No staged {self.kind.label} to promote")
            if expected_snapshot_id is not None and staged.snapshot_id != expected_snapshot_id:
                raise StaleStagingError(
                    f"Staged {self.kind.label} changed since review: expected "
                    f"{expected_snapshot_id}, found {staged.snapshot_id}"
                )

            # Step 2: Back up current production (the only writer of backup)
            existing = await self.production.read()
            if existing is not None:
                await self.backup.write(existing)

            # Step 3: Write new production snapshot
            promoted = self.kind.snapshot_model(
                data=staged.data,
                staged_at=utc_now(),
                actor_id=actor_id,
            )
            await self.production.write(promoted)

            # Step 4: Clear staging only once production is written
            await self.staging.clear()

            # Step 5: Audit
            await self._audit(AuditAction.PROMOTE, actor_id, promoted.staged_at, len(promoted.data))

        logger.info(
            f"Promoted {len(promoted.data)} {self.dataset.value} rows by {actor_id} "
            f"({staged.snapshot_id} -> {promoted.snapshot_id})"
        )
        return promoted

    async def rollback(self, actor_id: str) -> Snapshot:
        """Restore production from backup.

        Backup is left as is, so repeating a rollback returns the same data.

        Raises:
            NothingToRollBackError: Backup is empty.
        """
        async with self._lock:
            backup = await self.backup.read()
            if backup is None:
                raise NothingToRollBackError(f"No backup of the {self.kind.label} available for rollback")

            await self.production.write(backup)
            await self._audit(AuditAction.ROLLBACK, actor_id, utc_now(), len(backup.data))

        logger.info(
            f"Rolled back {self.dataset.value} production to {backup.snapshot_id} by {actor_id}"
        )
        return backup

    async def get_production(self) -> Optional[Snapshot]:
        return await self.production.read()

    async def get_staging(self) -> Optional[Snapshot]:
        return await self.staging.read()

    async def get_price_alerts(self) -> list[PriceVariance]:
        """Re-evaluate the price guard for whatever is staged now."""
        staged = await self.staging.read()
        if staged is None:
            return []
        return await self._evaluate_price_guards(staged.data)

    async def _evaluate_price_guards(self, next_records: list[R]) -> list[PriceVariance]:
        if self.kind.price_guard is None:
            return []
        production = await self.production.read()
        current = production.data if production is not None else []
        return self.kind.price_guard(next_records, current)

    async def _audit(
        self,
        action: AuditAction,
        actor_id: str,
        timestamp: datetime,
        rows: int,
    ) -> None:
        event = build_audit_event(self.dataset, action, actor_id, timestamp, rows=rows)
        await emit_audit(self.audit_hook, event)
