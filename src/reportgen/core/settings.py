"""
Centralized settings for reportgen.

All fields can be set via ``REPORTGEN_*`` environment variables (for example
``REPORTGEN_OUTPUT_FOLDER=/srv/reports``) or a ``.env`` file. Nested label
overrides use ``__``: ``REPORTGEN_LABELS__ALL_CHARGE_TYPES=...``.

Tags:
    reportgen, configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from reportgen.framework.arbitration import ErrorSeverity


class EnrichmentLabels(BaseModel):
    """Parameter keys and fixed display labels used by enrichment."""

    month_param: str = "mnt"
    month_name_param: str = "mntname"
    period_name_param: str = "PeriodName"
    charge_type_param: str = "sugts"
    charge_type_list_param: str = "sugtslist"
    charge_type_name_param: str = "sugtsname"
    settlement_param: str = "isvkod"
    settlement_name_param: str = "ishvname"
    organization_name_param: str = "rashutName"

    multiple_charge_types: str = "מספר סוגי חיוב"
    all_charge_types: str = "כל סוגי חיוב"
    multiple_settlements: str = "מספר יישובים"
    all_settlements: str = "כל היישובים"


class ReportSettings(BaseSettings):
    """reportgen configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REPORTGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ── Folders ──────────────────────────────────────────────────
    templates_folder: Path = Field(default=Path("templates"))
    output_folder: Path = Field(default=Path("output"))
    logs_folder: Path = Field(default=Path("logs"))

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///reportgen.db")
    database_echo: bool = False
    database_pool_timeout: int | None = None

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    # ── Error arbitration ────────────────────────────────────────
    error_log_threshold: ErrorSeverity = Field(default=ErrorSeverity.WARNING)
    error_break_threshold: ErrorSeverity = Field(default=ErrorSeverity.CRITICAL)

    # ── Lookups ──────────────────────────────────────────────────
    lookup_cache_max_items: int = Field(default=500, ge=1)
    month_cache_ttl_seconds: int = Field(default=30 * 60)
    charge_type_cache_ttl_seconds: int = Field(default=120 * 60)
    settlement_cache_ttl_seconds: int = Field(default=120 * 60)
    organization_cache_ttl_seconds: int = Field(default=5 * 60)

    # ── Pipeline ─────────────────────────────────────────────────
    max_workers: int = Field(default=4, ge=1)
    no_data_label: str = "אין נתונים להצגה"
    labels: EnrichmentLabels = Field(default_factory=EnrichmentLabels)

    @model_validator(mode="after")
    def _check_thresholds(self) -> ReportSettings:
        if self.error_log_threshold > self.error_break_threshold:
            raise ValueError(
                "error_log_threshold must not exceed error_break_threshold "
                f"({self.error_log_threshold.value} > {self.error_break_threshold.value})"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> ReportSettings:
    """Return the cached process-wide settings."""
    return ReportSettings()


def clear_settings_cache() -> None:
    """Drop the cached settings so the next ``get_settings()`` re-reads the environment."""
    get_settings.cache_clear()
