"""Advisory CSV check run before a file is handed to a pipeline.

Unlike the record validators, columns are located through header aliases
("uom" for Unit, "cost" for Unit Price, ...), and findings carry a
severity. Nothing here gates staging; it only tells the uploader what to
fix or double-check.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

DEVIATION_THRESHOLD = 0.30
ROW_LIST_LIMIT = 8


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


_SEVERITY_RANK = {Severity.ERROR: 0, Severity.WARNING: 1, Severity.INFO: 2}


@dataclass(frozen=True)
class AdvisoryField:
    field_id: str
    label: str
    aliases: tuple[str, ...]


REQUIRED_FIELDS = (
    AdvisoryField("description", "Description", ("description", "item", "item description", "name")),
    AdvisoryField("category", "Category", ("category", "segment", "group")),
    AdvisoryField("unit", "Unit", ("unit", "uom", "measure")),
    AdvisoryField("unit_price", "Unit Price", ("unit price", "unitprice", "price", "unit_price", "cost")),
)


@dataclass
class AdvisoryIssue:
    severity: Severity
    field: str
    message: str
    context: Optional[str] = None


@dataclass
class PriceInsights:
    average: Optional[float] = None
    deviation_count: int = 0
    most_extreme_row: Optional[int] = None
    most_extreme_deviation: Optional[float] = None


@dataclass
class AdvisoryReport:
    issues: list[AdvisoryIssue] = field(default_factory=list)
    price_insights: PriceInsights = field(default_factory=PriceInsights)
    missing_columns: list[str] = field(default_factory=list)

    @property
    def blocking_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == Severity.WARNING)


def format_row_list(rows: list[int]) -> str:
    """Render row numbers, eliding the middle of long lists."""
    if len(rows) <= ROW_LIST_LIMIT:
        return ", ".join(str(r) for r in rows)
    head = ", ".join(str(r) for r in rows[:6])
    return f"{head}, …, {rows[-1]}"


def to_number(value: Optional[str]) -> Optional[float]:
    """Lenient price parse: drops currency symbols and thousands separators."""
    if value is None:
        return None
    cleaned = re.sub(r"[^0-9.,-]", "", value).replace(",", "")
    if not cleaned.strip():
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def _plural(count: int, singular: str = "", plural: str = "s") -> str:
    return singular if count == 1 else plural


def resolve_columns(headers: list[str]) -> dict[str, Optional[str]]:
    """Map each required field id to the first header matching one of its aliases."""
    lookup = {h.strip().lower(): h for h in headers}
    resolved: dict[str, Optional[str]] = {}
    for wanted in REQUIRED_FIELDS:
        match = next((alias for alias in wanted.aliases if alias in lookup), None)
        resolved[wanted.field_id] = lookup[match] if match else None
    return resolved


def evaluate_advisory(rows: list[dict[str, str]], flow: str = "import") -> AdvisoryReport:
    """Check parsed CSV rows for schema gaps, bad prices and price outliers.

    Row numbers in messages are 1-based file lines, the header being line 1.
    """
    report = AdvisoryReport()
    issues = report.issues
    verb = "import" if flow == "import" else "export"

    headers = list(rows[0].keys()) if rows else []
    resolved = resolve_columns(headers)
    report.missing_columns = [s.label for s in REQUIRED_FIELDS if not resolved[s.field_id]]

    if not rows:
        issues.append(AdvisoryIssue(
            Severity.INFO, "Dataset", "No data rows detected.",
            "Verify that the CSV has a header row followed by at least one data row "
            "before importing or exporting.",
        ))

    if report.missing_columns:
        issues.append(AdvisoryIssue(
            Severity.ERROR, "Schema",
            f"Missing required columns: {', '.join(report.missing_columns)}.",
            f"Add the missing headers before attempting to {verb} this file.",
        ))

    missing_values: dict[str, list[int]] = {}
    invalid_price_rows: list[int] = []
    negative_price_rows: list[int] = []
    prices: list[tuple[int, float]] = []

    for index, row in enumerate(rows):
        row_number = index + 2
        for wanted in REQUIRED_FIELDS:
            column = resolved[wanted.field_id]
            if not column:
                continue
            value = row.get(column)
            if value is None or not value.strip():
                missing_values.setdefault(wanted.label, []).append(row_number)
                continue
            if wanted.field_id == "unit_price":
                parsed = to_number(value)
                if parsed is None:
                    invalid_price_rows.append(row_number)
                    continue
                if parsed < 0:
                    negative_price_rows.append(row_number)
                prices.append((row_number, parsed))

    for label, field_rows in missing_values.items():
        issues.append(AdvisoryIssue(
            Severity.ERROR, label,
            f"Missing {label.lower()} values in {len(field_rows)} row{_plural(len(field_rows))}.",
            f"Rows {format_row_list(field_rows)} need {label.lower()} values before you {verb} the file.",
        ))

    if invalid_price_rows:
        count = len(invalid_price_rows)
        issues.append(AdvisoryIssue(
            Severity.ERROR, "Unit Price",
            f"Found {count} non-numeric price value{_plural(count)}.",
            f"Rows {format_row_list(invalid_price_rows)} should only contain numbers (e.g. 125.50). "
            "Remove text or currency symbols before proceeding.",
        ))

    if negative_price_rows:
        count = len(negative_price_rows)
        step = "promote the import" if flow == "import" else "finalise the export"
        issues.append(AdvisoryIssue(
            Severity.ERROR, "Unit Price",
            f"Detected {count} negative price value{_plural(count)}.",
            f"Rows {format_row_list(negative_price_rows)} must be zero or positive before you {step}.",
        ))

    _add_price_deviation(report, prices)

    issues.sort(key=lambda issue: _SEVERITY_RANK[issue.severity])
    return report


def _add_price_deviation(report: AdvisoryReport, prices: list[tuple[int, float]]) -> None:
    """Warn about rows whose price strays from the file average by more than the threshold."""
    if not prices:
        return
    average = sum(value for _, value in prices) / len(prices)
    report.price_insights.average = average
    if average <= 0:
        return

    deviations = [
        (row, abs(value - average) / average)
        for row, value in prices
        if abs(value - average) / average > DEVIATION_THRESHOLD
    ]
    report.price_insights.deviation_count = len(deviations)
    if not deviations:
        return

    extreme_row, extreme = max(deviations, key=lambda item: item[1])
    report.price_insights.most_extreme_row = extreme_row
    report.price_insights.most_extreme_deviation = extreme
    count = len(deviations)
    report.issues.append(AdvisoryIssue(
        Severity.WARNING, "Unit Price",
        f"{count} row{' shows' if count == 1 else 's show'} a price swing greater than "
        f"{DEVIATION_THRESHOLD * 100:.0f}% of the file average.",
        f"Largest variance on row {extreme_row}: {extreme * 100:.1f}% vs. average K{average:,.2f}. "
        "Add a note or double-check supplier quotes before proceeding.",
    ))
