"""Merchant price-variance guard.

Flags staged prices that move more than the threshold relative to the live
price for the same SKU. Advisory only: breaching it never blocks staging.
"""

import math
from typing import Optional

from price_ingest.core.config import settings
from price_ingest.core.models import MerchantPriceRecord, PriceVariance


def evaluate_price_guards(
    next_records: list[MerchantPriceRecord],
    current_records: list[MerchantPriceRecord],
    threshold: Optional[float] = None,
) -> list[PriceVariance]:
    """Return one variance per staged SKU whose price change exceeds ``threshold``.

    ``threshold`` defaults to ``settings.price_guard_threshold``, read on
    every call. New SKUs never vary. A zero live price is always flagged
    with an infinite delta.
    """
    if threshold is None:
        threshold = settings.price_guard_threshold
    current_by_sku = {record.sku: record for record in current_records}
    breaches: list[PriceVariance] = []

    for record in next_records:
        existing = current_by_sku.get(record.sku)
        if existing is None:
            continue
        if existing.price == 0:
            delta = math.inf
        else:
            delta = abs(record.price - existing.price) / existing.price
            if delta <= threshold:
                continue
        breaches.append(PriceVariance(
            sku=record.sku,
            previous_price=existing.price,
            next_price=record.price,
            delta_percent=delta,
        ))

    return breaches
