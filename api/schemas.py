from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from core.selection import ALL_SUPPLIERS


class DashboardFiltersModel(BaseModel):
    supplier: str = ALL_SUPPLIERS
    supplier_query: str = ""
    show_retail_sales: bool = True
    show_retail_transfers: bool = True
    show_warehouse_sales: bool = True


class ProgressModel(BaseModel):
    bytes_read: int = 0
    total_bytes: int = 0
    rows_read: int = 0
    percent: Optional[int] = None


class StatusResponse(BaseModel):
    status: str
    progress: ProgressModel
    error: Optional[str] = None
    type: Optional[str] = None
    message: Optional[str] = None


class MetaListResponse(BaseModel):
    values: List[str]
