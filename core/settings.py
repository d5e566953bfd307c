from __future__ import annotations

import codecs
import logging
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_DIR = Path(__file__).resolve().parents[1]
DEFAULT_CSV_NAME = "Warehouse_and_Retail_Sales.csv"


class DashboardSettings(BaseSettings):
    # Local path or http(s) URL of the sales CSV.
    CSV_SOURCE: str = str(PROJECT_DIR / DEFAULT_CSV_NAME)
    CHUNK_SIZE: int = 64 * 1024
    PROGRESS_EVERY_ROWS: int = 5000
    ENCODING: str = "utf-8-sig"
    HTTP_TIMEOUT_SECONDS: float = 30.0
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_", env_file=".env", extra="ignore")

    @field_validator("CHUNK_SIZE", "PROGRESS_EVERY_ROWS")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        return max(1, v)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def uppercase_log_level(cls, v):
        if v is None:
            return "INFO"
        v_upper = str(v).strip().upper()
        if v_upper not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL must be a logging level name, got: {v}")
        return v_upper

    @field_validator("ENCODING")
    @classmethod
    def known_encoding(cls, v: str) -> str:
        try:
            codecs.lookup(v)
        except LookupError as exc:
            raise ValueError(f"ENCODING must name a known codec, got: {v}") from exc
        return v


@lru_cache()
def get_settings() -> DashboardSettings:
    return DashboardSettings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or get_settings().LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
