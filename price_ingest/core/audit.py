"""Audit hook plumbing for stage/promote/rollback actions.

The hook is a single callable, sync or async. A failing hook is logged and
ignored so the action that triggered it still completes.
"""

import inspect
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union

from price_ingest.core.models import AuditAction, AuditEvent, DatasetKind

logger = logging.getLogger(__name__)

AuditHook = Callable[[AuditEvent], Union[None, Awaitable[None]]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def build_audit_event(
    dataset: DatasetKind,
    action: AuditAction,
    actor_id: str,
    timestamp: Optional[datetime] = None,
    rows: Optional[int] = None,
) -> AuditEvent:
    """Build an audit event; ``details`` carries the row count when known."""
    return AuditEvent(
        dataset=dataset,
        action=action,
        actor_id=actor_id,
        timestamp=(timestamp or utc_now()).isoformat(),
        details={"rows": rows} if rows is not None else None,
    )


async def emit_audit(hook: Optional[AuditHook], event: AuditEvent) -> None:
    """Deliver ``event`` to ``hook``, isolating any failure."""
    if hook is None:
        return
    try:
        result = hook(event)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(
            f"Audit hook failed for {event.dataset.value}:{event.action.value} "
            f"by {event.actor_id}: {e}",
            exc_info=True,
        )


class AuditTrail:
    """In-memory audit hook that keeps every event it receives."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    def __call__(self, event: AuditEvent) -> None:
        self.events.append(event)

    def for_action(self, action: AuditAction) -> list[AuditEvent]:
        return [e for e in self.events if e.action == action]
