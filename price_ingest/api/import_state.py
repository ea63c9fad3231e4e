"""Observable import state machine over an IngestionService.

idle -> validating -> staged -> promoting -> idle, with rolling_back for
rollbacks and error for any failure. Listeners are called with the new
state after every transition.

Price alerts are advisory in the service; this controller is the layer
that refuses to promote them unless the caller acknowledges the override.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional

from price_ingest.core.diff import DiffResult
from price_ingest.core.ingestion_service import (
    IngestionError,
    IngestionService,
    NothingToPromoteError,
    StageResult,
)
from price_ingest.core.models import PriceVariance, Snapshot, ValidationIssue

logger = logging.getLogger(__name__)


class ImportStatus(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    STAGED = "staged"
    PROMOTING = "promoting"
    ROLLING_BACK = "rolling_back"
    ERROR = "error"


class PriceOverrideRequiredError(IngestionError):
    """Staged prices breach the guard and the override was not acknowledged."""


@dataclass(frozen=True)
class ImportState:
    status: ImportStatus = ImportStatus.IDLE
    progress: float = 0.0
    issues: list[ValidationIssue] = field(default_factory=list)
    diff: Optional[DiffResult] = None
    price_alerts: list[PriceVariance] = field(default_factory=list)
    requires_override: bool = False
    snapshot: Optional[Snapshot] = None
    reviewed_snapshot_id: Optional[str] = None  # set only by a successful stage
    error: Optional[str] = None


Listener = Callable[[ImportState], None]


class ImportController:
    def __init__(self, service: IngestionService):
        self.service = service
        self.state = ImportState()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes) -> None:
        self.state = replace(self.state, **changes)
        for listener in list(self._listeners):
            listener(self.state)

    async def stage(self, csv: str, actor_id: str) -> StageResult:
        self._update(status=ImportStatus.VALIDATING, progress=0.25, error=None)
        try:
            result = await self.service.stage_csv(csv, actor_id)
        except Exception as e:
            self._update(status=ImportStatus.ERROR, progress=0.0, error=str(e))
            raise

        if not result.success:
            # staging is untouched, so the reviewed snapshot and its alerts stay pending
            self._update(
                status=ImportStatus.ERROR,
                progress=0.0,
                issues=result.issues,
                error="Validation failed",
            )
            return result

        self._update(
            status=ImportStatus.STAGED,
            progress=0.5,
            issues=[],
            diff=result.diff,
            price_alerts=result.price_alerts,
            requires_override=result.requires_override,
            snapshot=result.snapshot,
            reviewed_snapshot_id=result.snapshot.snapshot_id,
        )
        return result

    async def promote(self, actor_id: str, acknowledge_override: bool = False) -> Snapshot:
        """Promote the staged snapshot this controller last showed.

        Only the snapshot from the last successful ``stage`` call is ever
        published. Price alerts are re-evaluated against current production
        before promoting.

        Raises:
            NothingToPromoteError: This controller has not staged anything
                since its last promote.
            PriceOverrideRequiredError: Price alerts are pending and
                ``acknowledge_override`` is False.
            StaleStagingError: Staging was rewritten after it was reviewed.
            IngestionError: The service refused the promote.
        """
        reviewed_id = self.state.reviewed_snapshot_id
        if reviewed_id is None:
            message = f"No staged {self.service.kind.label} has been reviewed for promotion"
            self._update(status=ImportStatus.ERROR, progress=0.5, error=message)
            raise NothingToPromoteError(message)

        try:
            alerts = await self.service.get_price_alerts()
        except Exception as e:
            self._update(status=ImportStatus.ERROR, progress=0.5, error=str(e))
            raise

        if alerts and not acknowledge_override:
            message = (
                f"{len(alerts)} price changes exceed the guard threshold; "
                "acknowledge the override to promote"
            )
            self._update(
                status=ImportStatus.ERROR,
                progress=0.5,
                price_alerts=alerts,
                requires_override=True,
                error=message,
            )
            raise PriceOverrideRequiredError(message)

        self._update(status=ImportStatus.PROMOTING, progress=0.75, error=None)
        try:
            snapshot = await self.service.promote(actor_id, expected_snapshot_id=reviewed_id)
        except Exception as e:
            self._update(status=ImportStatus.ERROR, progress=0.5, error=str(e))
            raise

        if alerts:
            logger.warning(
                f"{actor_id} promoted {self.service.dataset.value} with "
                f"{len(alerts)} acknowledged price alerts"
            )
        self._update(
            status=ImportStatus.IDLE,
            progress=1.0,
            snapshot=snapshot,
            diff=None,
            price_alerts=[],
            requires_override=False,
            reviewed_snapshot_id=None,
        )
        return snapshot

    async def rollback(self, actor_id: str) -> Snapshot:
        self._update(status=ImportStatus.ROLLING_BACK, progress=0.5, error=None)
        try:
            snapshot = await self.service.rollback(actor_id)
        except Exception as e:
            self._update(status=ImportStatus.ERROR, progress=0.5, error=str(e))
            raise

        self._update(status=ImportStatus.IDLE, progress=1.0, snapshot=snapshot)
        return snapshot

    async def refresh_diff(self) -> DiffResult:
        """Recompute the staged-vs-production diff without changing status."""
        diff = await self.service.diff_with_production()
        self._update(diff=diff)
        return diff

    async def refresh_price_alerts(self) -> list[PriceVariance]:
        """Re-run the price guard without changing status."""
        alerts = await self.service.get_price_alerts()
        self._update(price_alerts=alerts, requires_override=bool(alerts))
        return alerts
