"""Field validators and record-level validators for price list rows.

Field primitives never raise. Each returns a FieldResult carrying the parsed
value (or None) and at most one issue. A below-minimum number keeps its
value alongside the issue; the batch is still invalid because any issue
marks it so.

Record validators check each required column by exact header name and only
emit a record when every required field of that row parsed.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Generic, Optional, TypeVar

from price_ingest.core.models import (
    BenchmarkPriceRecord,
    MerchantPriceRecord,
    ValidationIssue,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DATE_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
NUMBER_PATTERN = re.compile(r"^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$")

REQUIRED_BENCHMARK_FIELDS = [
    "Item Name",
    "Category",
    "Average Price",
    "Source Label",
    "Last Updated",
]

REQUIRED_MERCHANT_FIELDS = [
    "SKU",
    "Item Name",
    "Unit",
    "Category",
    "Price",
]


@dataclass
class FieldResult(Generic[T]):
    """Parsed value plus the issue raised while parsing it, if any."""
    value: Optional[T]
    issue: Optional[ValidationIssue] = None

    def collect(self, issues: list[ValidationIssue]) -> Optional[T]:
        """Append the issue (if any) to a shared list and return the value."""
        if self.issue is not None:
            issues.append(self.issue)
        return self.value


@dataclass
class ValidationResult(Generic[T]):
    data: list[T] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues


RowValidator = Callable[[list[dict[str, str]]], ValidationResult]


# ---------------------------------------------------------------------------
# Field primitives
# ---------------------------------------------------------------------------

def _issue(path: str, message: str) -> ValidationIssue:
    return ValidationIssue(path=path, message=message)


def require_string(value: Optional[str], path: str) -> FieldResult[str]:
    """Trimmed non-empty string, or an issue."""
    trimmed = value.strip() if value is not None else ""
    if not trimmed:
        return FieldResult(None, _issue(path, "Value is required"))
    return FieldResult(trimmed)


def optional_string(value: Optional[str]) -> Optional[str]:
    """Trimmed string, or None when absent or blank. Never an issue."""
    trimmed = value.strip() if value is not None else ""
    return trimmed or None


def parse_decimal(
    value: Optional[str],
    path: str,
    min_value: Optional[float] = None,
) -> FieldResult[float]:
    """Parse a finite number.

    A value below ``min_value`` is reported but still returned.
    """
    trimmed = value.strip() if value is not None else ""
    if not trimmed:
        return FieldResult(None, _issue(path, "Value is required"))
    # ASCII decimal notation only: no "1_000", no non-ASCII digits
    if not NUMBER_PATTERN.match(trimmed):
        return FieldResult(None, _issue(path, "Value must be a number"))
    parsed = float(trimmed)
    if not math.isfinite(parsed):
        return FieldResult(None, _issue(path, "Value must be a number"))
    if min_value is not None and parsed < min_value:
        return FieldResult(parsed, _issue(path, f"Value must be ≥ {min_value:g}"))
    return FieldResult(parsed)


def parse_date(value: Optional[str], path: str) -> FieldResult[date]:
    """Parse a strict YYYY-MM-DD calendar date."""
    trimmed = value.strip() if value is not None else ""
    if not trimmed:
        return FieldResult(None, _issue(path, "Value is required"))
    if not DATE_PATTERN.match(trimmed):
        return FieldResult(None, _issue(path, "Date must be in YYYY-MM-DD format"))
    try:
        return FieldResult(date.fromisoformat(trimmed))
    except ValueError:
        return FieldResult(None, _issue(path, "Invalid date"))


def _check_columns(
    row: dict[str, str],
    required: list[str],
    index: int,
    issues: list[ValidationIssue],
) -> None:
    for column in required:
        if column not in row:
            issues.append(_issue(f"{index}.{column}", "Missing column"))


# ---------------------------------------------------------------------------
# Record validators
# ---------------------------------------------------------------------------

def validate_benchmark_rows(rows: list[dict[str, str]]) -> ValidationResult[BenchmarkPriceRecord]:
    """Validate benchmark (ZPPA) price list rows."""
    result: ValidationResult[BenchmarkPriceRecord] = ValidationResult()
    issues = result.issues

    for index, row in enumerate(rows):
        _check_columns(row, REQUIRED_BENCHMARK_FIELDS, index, issues)

        item_name = require_string(row.get("Item Name"), f"{index}.Item Name").collect(issues)
        category = require_string(row.get("Category"), f"{index}.Category").collect(issues)
        average_price = parse_decimal(
            row.get("Average Price"), f"{index}.Average Price", min_value=0,
        ).collect(issues)
        source_label = require_string(row.get("Source Label"), f"{index}.Source Label").collect(issues)
        last_updated = parse_date(row.get("Last Updated"), f"{index}.Last Updated").collect(issues)

        if item_name and category and average_price is not None and source_label and last_updated:
            result.data.append(BenchmarkPriceRecord(
                item_name=item_name,
                category=category,
                average_price=average_price,
                source_label=source_label,
                last_updated=last_updated,
            ))

    logger.debug(f"Validated {len(rows)} benchmark rows: {len(result.data)} records, {len(issues)} issues")
    return result


def validate_merchant_rows(rows: list[dict[str, str]]) -> ValidationResult[MerchantPriceRecord]:
    """Validate merchant price list rows.

    SKUs must be unique within one call; every repeat is reported on the
    row where it appears, without suppressing that row's other checks.
    """
    result: ValidationResult[MerchantPriceRecord] = ValidationResult()
    issues = result.issues
    seen_skus: set[str] = set()

    for index, row in enumerate(rows):
        _check_columns(row, REQUIRED_MERCHANT_FIELDS, index, issues)

        sku = require_string(row.get("SKU"), f"{index}.SKU").collect(issues)
        if sku:
            if sku in seen_skus:
                issues.append(_issue(f"{index}.SKU", "Duplicate SKU in file"))
            seen_skus.add(sku)

        item_name = require_string(row.get("Item Name"), f"{index}.Item Name").collect(issues)
        unit = require_string(row.get("Unit"), f"{index}.Unit").collect(issues)
        category = require_string(row.get("Category"), f"{index}.Category").collect(issues)
        price = parse_decimal(row.get("Price"), f"{index}.Price", min_value=0).collect(issues)
        pack_size = optional_string(row.get("Pack Size"))

        last_updated = None
        if optional_string(row.get("Last Updated")):
            last_updated = parse_date(row.get("Last Updated"), f"{index}.Last Updated").collect(issues)

        if sku and item_name and unit and category and price is not None:
            result.data.append(MerchantPriceRecord(
                sku=sku,
                item_name=item_name,
                unit=unit,
                category=category,
                price=price,
                pack_size=pack_size,
                last_updated=last_updated,
            ))

    logger.debug(f"Validated {len(rows)} merchant rows: {len(result.data)} records, {len(issues)} issues")
    return result
