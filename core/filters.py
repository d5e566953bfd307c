from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from core.selection import ALL_SUPPLIERS, SERIES_IDS


@dataclass(frozen=True)
class DashboardFilters:
    supplier: str = ALL_SUPPLIERS
    supplier_query: str = ""
    show_retail_sales: bool = True
    show_retail_transfers: bool = True
    show_warehouse_sales: bool = True

    @property
    def selected_series(self) -> List[str]:
        flags = (self.show_retail_sales, self.show_retail_transfers, self.show_warehouse_sales)
        return [series_id for series_id, on in zip(SERIES_IDS, flags) if on]


def _as_bool(value: object, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def normalize_filters(raw: dict, *, available_suppliers: Optional[Sequence[str]] = None) -> DashboardFilters:
    supplier = str(raw.get("supplier") or ALL_SUPPLIERS).strip() or ALL_SUPPLIERS
    if available_suppliers is not None and supplier != ALL_SUPPLIERS and supplier not in available_suppliers:
        supplier = ALL_SUPPLIERS

    supplier_query = (raw.get("supplier_query") or "").strip()

    return DashboardFilters(
        supplier=supplier,
        supplier_query=supplier_query,
        show_retail_sales=_as_bool(raw.get("show_retail_sales")),
        show_retail_transfers=_as_bool(raw.get("show_retail_transfers")),
        show_warehouse_sales=_as_bool(raw.get("show_warehouse_sales")),
    )
