from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

from core.aggregation import ResultSnapshot
from core.charts import build_time_series_chart, to_vega_spec
from core.filters import DashboardFilters
from core.selection import (
    filter_suppliers,
    pick_aggregates,
    selection_title,
    series_frame,
    sum_aggregates,
)


def compute_overview(filters: DashboardFilters, snapshot: ResultSnapshot) -> Dict[str, Any]:
    buckets = pick_aggregates(snapshot, filters.supplier)
    rows: List[Dict[str, Any]] = [
        {"month_key": key, **asdict(bucket)} for key, bucket in zip(snapshot.month_keys, buckets)
    ]

    chart = None
    series = filters.selected_series
    if series and snapshot.month_keys:
        chart = to_vega_spec(build_time_series_chart(series_frame(snapshot, filters.supplier), series))

    return {
        "filters": asdict(filters),
        "title": selection_title(filters.supplier),
        "month_keys": list(snapshot.month_keys),
        "rows": rows,
        "totals": asdict(sum_aggregates(buckets)),
        "supplier_options": filter_suppliers(snapshot.suppliers, filters.supplier_query),
        "rows_read": snapshot.rows_read,
        "series": series,
        "chart": chart,
    }
