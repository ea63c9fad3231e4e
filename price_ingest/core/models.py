"""Pydantic models for price records, snapshots, and audit events.

Attributes are snake_case; ``model_dump(by_alias=True)`` renders the
camelCase shape consumers and persisted snapshots use.
"""

from datetime import date, datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from uuid_extensions import uuid7

SNAPSHOT_ID_PREFIX = "snap_"


def new_snapshot_id() -> str:
    """Time-sortable snapshot id: ``snap_`` + UUIDv7 hex, so ids order by staging time."""
    return f"{SNAPSHOT_ID_PREFIX}{uuid7().hex}"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DatasetKind(str, Enum):
    ZPPA = "zppa"
    MERCHANT = "merchant"


class AuditAction(str, Enum):
    STAGE = "stage"
    PROMOTE = "promote"
    ROLLBACK = "rollback"


# --- Record kinds ---


class BenchmarkPriceRecord(WireModel):
    """Government benchmark price list entry, keyed by item name + category."""
    item_name: str
    category: str
    average_price: float
    source_label: str
    last_updated: date


class MerchantPriceRecord(WireModel):
    """Merchant-submitted price list entry, keyed by SKU."""
    sku: str
    item_name: str
    unit: str
    category: str
    price: float
    pack_size: Optional[str] = None
    last_updated: Optional[date] = None


R = TypeVar("R", bound=BaseModel)


class Snapshot(WireModel, Generic[R]):
    """One dataset version held in a staging/production/backup slot."""
    data: list[R]
    staged_at: datetime
    actor_id: str
    snapshot_id: str = Field(default_factory=new_snapshot_id)


# --- Validation and guard output ---


class ValidationIssue(WireModel):
    path: str  # "<row-index>.<column name>"
    message: str


class PriceVariance(WireModel):
    sku: str
    previous_price: Optional[float] = None
    next_price: float
    delta_percent: float  # fraction, inf for a zero baseline


# --- Audit ---


class AuditEvent(WireModel):
    dataset: DatasetKind
    action: AuditAction
    actor_id: str
    timestamp: str  # ISO-8601
    details: Optional[dict] = None
