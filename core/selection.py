from __future__ import annotations

from dataclasses import asdict
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from core.aggregation import ZERO_BUCKET, AggregateBucket, ResultSnapshot

ALL_SUPPLIERS = "__ALL__"

# (id, label, colour)
SERIES = (
    ("retail_sales", "Retail Sales", "#60a5fa"),
    ("retail_transfers", "Retail Transfers", "#34d399"),
    ("warehouse_sales", "Warehouse Sales", "#f472b6"),
)
SERIES_IDS = tuple(s[0] for s in SERIES)
SERIES_LABELS = {s[0]: s[1] for s in SERIES}
SERIES_COLORS = {s[0]: s[2] for s in SERIES}


def is_all_suppliers(selection: Optional[str]) -> bool:
    return not selection or selection == ALL_SUPPLIERS


def pick_aggregates(snapshot: ResultSnapshot, selection: Optional[str] = ALL_SUPPLIERS) -> List[AggregateBucket]:
    """One bucket per snapshot month, zero where the selection has no data."""
    if is_all_suppliers(selection):
        source = snapshot.totals
    else:
        source = snapshot.by_supplier.get(selection, {})
    return [source.get(key, ZERO_BUCKET) for key in snapshot.month_keys]


def sum_aggregates(buckets: Iterable[AggregateBucket]) -> AggregateBucket:
    total = ZERO_BUCKET
    for bucket in buckets:
        total = total + bucket
    return total


def filter_suppliers(suppliers: Sequence[str], query: Optional[str]) -> List[str]:
    q = (query or "").strip().lower()
    if not q:
        return list(suppliers)
    return [s for s in suppliers if q in s.lower()]


def selection_title(selection: Optional[str]) -> str:
    return "All suppliers" if is_all_suppliers(selection) else str(selection)


def series_frame(snapshot: ResultSnapshot, selection: Optional[str] = ALL_SUPPLIERS) -> pd.DataFrame:
    buckets = pick_aggregates(snapshot, selection)
    df = pd.DataFrame([asdict(b) for b in buckets], columns=list(SERIES_IDS))
    df.insert(0, "month_key", list(snapshot.month_keys))
    return df
