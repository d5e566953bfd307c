"""Incremental month and supplier aggregation of sales rows.

An ``AggregationEngine`` belongs to exactly one ingestion run. It mutates its
own running buckets and hands out a frozen ``ResultSnapshot`` once the stream
is done; nothing else ever writes to those maps.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from pyuca import Collator

from core.errors import SchemaError

UNKNOWN_SUPPLIER = "Unknown"

# logical name -> header name
REQUIRED_COLUMNS: Dict[str, str] = {
    "year": "YEAR",
    "month": "MONTH",
    "supplier": "SUPPLIER",
    "retail_sales": "RETAIL SALES",
    "retail_transfers": "RETAIL TRANSFERS",
    "warehouse_sales": "WAREHOUSE SALES",
}

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


@dataclass(frozen=True)
class AggregateBucket:
    retail_sales: float = 0.0
    retail_transfers: float = 0.0
    warehouse_sales: float = 0.0

    def __add__(self, other: "AggregateBucket") -> "AggregateBucket":
        return AggregateBucket(
            retail_sales=self.retail_sales + other.retail_sales,
            retail_transfers=self.retail_transfers + other.retail_transfers,
            warehouse_sales=self.warehouse_sales + other.warehouse_sales,
        )


ZERO_BUCKET = AggregateBucket()


class _RunningBucket:
    __slots__ = ("retail_sales", "retail_transfers", "warehouse_sales")

    def __init__(self) -> None:
        self.retail_sales = 0.0
        self.retail_transfers = 0.0
        self.warehouse_sales = 0.0

    def add(self, retail_sales: float, retail_transfers: float, warehouse_sales: float) -> None:
        self.retail_sales += retail_sales
        self.retail_transfers += retail_transfers
        self.warehouse_sales += warehouse_sales

    def freeze(self) -> AggregateBucket:
        return AggregateBucket(self.retail_sales, self.retail_transfers, self.warehouse_sales)


@dataclass(frozen=True)
class ColumnIndex:
    year: int
    month: int
    supplier: int
    retail_sales: int
    retail_transfers: int
    warehouse_sales: int

    @classmethod
    def from_header(cls, fields: Sequence[str]) -> "ColumnIndex":
        by_name = {name.strip(): i for i, name in enumerate(fields)}
        missing = [logical for logical, header in REQUIRED_COLUMNS.items() if header not in by_name]
        if missing:
            raise SchemaError(missing)
        return cls(**{logical: by_name[header] for logical, header in REQUIRED_COLUMNS.items()})


@dataclass(frozen=True)
class ResultSnapshot:
    month_keys: Tuple[str, ...]
    suppliers: Tuple[str, ...]
    totals: Mapping[str, AggregateBucket]
    by_supplier: Mapping[str, Mapping[str, AggregateBucket]]
    rows_read: int


def parse_int(value: Optional[str]) -> Optional[int]:
    """Leading-integer parse: ``" 12abc"`` -> 12, ``"x"`` -> None."""
    if value is None:
        return None
    match = _INT_PREFIX.match(value)
    return int(match.group(1)) if match else None


def parse_amount(value: Optional[str]) -> float:
    """Leading-number parse that never fails: garbage and blanks become 0."""
    if value is None:
        return 0.0
    match = _FLOAT_PREFIX.match(value)
    if not match:
        return 0.0
    out = float(match.group(1))
    return out if math.isfinite(out) else 0.0


def month_key(year: int, month: int) -> str:
    return f"{year}-{month:02d}"


def _field(fields: Sequence[str], index: int) -> Optional[str]:
    return fields[index] if index < len(fields) else None


@lru_cache(maxsize=1)
def _collator() -> Collator:
    # loads the DUCET table once per process
    return Collator()


def _supplier_sort_key(name: str) -> Tuple[Tuple[int, ...], str]:
    """Unicode collation order (accents sort with their base letter), raw name breaks ties."""
    return _collator().sort_key(name), name


class AggregationEngine:
    def __init__(self) -> None:
        self.columns: Optional[ColumnIndex] = None
        self.rows_read = 0
        self._months: Dict[str, Tuple[int, int]] = {}
        self._suppliers: Set[str] = set()
        self._totals: Dict[str, _RunningBucket] = {}
        self._by_supplier: Dict[str, Dict[str, _RunningBucket]] = {}

    def ingest_row(self, fields: Sequence[str]) -> bool:
        """Consume one tokenized row; returns True when it was aggregated.

        The first row seen is the header. Raises ``SchemaError`` if it lacks
        any required column.
        """
        if self.columns is None:
            self.columns = ColumnIndex.from_header(fields)
            return False

        idx = self.columns
        year = parse_int(_field(fields, idx.year))
        month = parse_int(_field(fields, idx.month))
        if year is None or month is None:
            return False

        supplier = (_field(fields, idx.supplier) or "").strip() or UNKNOWN_SUPPLIER
        retail_sales = parse_amount(_field(fields, idx.retail_sales))
        retail_transfers = parse_amount(_field(fields, idx.retail_transfers))
        warehouse_sales = parse_amount(_field(fields, idx.warehouse_sales))

        key = month_key(year, month)
        self._months[key] = (year, month)
        self._suppliers.add(supplier)

        total = self._totals.get(key)
        if total is None:
            total = self._totals[key] = _RunningBucket()
        total.add(retail_sales, retail_transfers, warehouse_sales)

        supplier_months = self._by_supplier.get(supplier)
        if supplier_months is None:
            supplier_months = self._by_supplier[supplier] = {}
        bucket = supplier_months.get(key)
        if bucket is None:
            bucket = supplier_months[key] = _RunningBucket()
        bucket.add(retail_sales, retail_transfers, warehouse_sales)

        self.rows_read += 1
        return True

    def finalize(self) -> ResultSnapshot:
        month_keys: List[str] = sorted(self._months, key=self._months.__getitem__)
        suppliers: List[str] = sorted(self._suppliers, key=_supplier_sort_key)
        totals = {key: bucket.freeze() for key, bucket in self._totals.items()}
        by_supplier = {
            supplier: MappingProxyType({key: bucket.freeze() for key, bucket in months.items()})
            for supplier, months in self._by_supplier.items()
        }
        return ResultSnapshot(
            month_keys=tuple(month_keys),
            suppliers=tuple(suppliers),
            totals=MappingProxyType(totals),
            by_supplier=MappingProxyType(by_supplier),
            rows_read=self.rows_read,
        )
