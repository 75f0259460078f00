"""Configuration management for Tech News Ingest."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError


class FilterRule(BaseModel):
    """A keyword list and the weight it carries within its rule group."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    keywords: tuple[str, ...]
    weight: float = 1.0

    @field_validator("keywords")
    @classmethod
    def validate_keywords(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Reject empty rules and blank keywords."""
        if not v:
            raise ValueError("Filter rule must contain at least one keyword")
        if any(not keyword.strip() for keyword in v):
            raise ValueError("Filter keywords must be non-blank strings")
        return v

    @field_validator("weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Rule weight must not be negative")
        return v


class FilterConfig(BaseModel):
    """Immutable snapshot of the relevance filter rules and thresholds."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    include_rules: tuple[FilterRule, ...]
    exclude_rules: tuple[FilterRule, ...]
    min_include_score: float = 0.3
    max_exclude_score: float = 0.2

    @field_validator("min_include_score", "max_exclude_score")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Validate thresholds are between 0 and 1."""
        if not 0 <= v <= 1:
            raise ValueError("Threshold must be between 0 and 1")
        return v

    @model_validator(mode="after")
    def validate_groups(self) -> "FilterConfig":
        if not self.include_rules:
            raise ValueError("At least one include rule is required")
        if not self.exclude_rules:
            raise ValueError("At least one exclude rule is required")
        return self


DEFAULT_FILTER_CONFIG = FilterConfig(
    include_rules=(
        # Corporate finance
        FilterRule(
            keywords=("earnings", "revenue", "funding", "ipo", "acquisition", "merger"),
            weight=1.0,
        ),
        # Market movement and launches
        FilterRule(
            keywords=("stock", "record", "surge", "launch"),
            weight=0.8,
        ),
    ),
    exclude_rules=(
        # Programming languages and stacks
        FilterRule(
            keywords=("programming", "javascript", "typescript", "node.js", "python", "react"),
            weight=1.0,
        ),
        # Tutorials and tooling
        FilterRule(
            keywords=("tutorial", "how to", "framework", "github"),
            weight=1.0,
        ),
    ),
    min_include_score=0.3,
    max_exclude_score=0.2,
)


def build_filter_config(data: dict[str, Any], base: FilterConfig | None = None) -> FilterConfig:
    """Merge ``data`` over ``base`` and validate the result.

    Raises:
        ConfigError: If the merged configuration is invalid
    """
    merged = (base or DEFAULT_FILTER_CONFIG).model_dump()
    merged.update(data)
    try:
        return FilterConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigError(f"Invalid filter configuration: {e}") from e


def load_filter_config(config_path: str | Path) -> FilterConfig:
    """Load a filter rule file (YAML) on top of the compiled defaults."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Filter rule file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Filter rule file must contain a mapping: {path}")

    return build_filter_config(data)


class Settings(BaseSettings):
    """Main application settings."""

    # ── Environment ────────────────────────────────────────────────────────
    environment: str = Field("production", description="Runtime environment (production, development)")

    # ── Fetching ───────────────────────────────────────────────────────────
    user_agent: str = Field(
        "TechNewsIngest/1.0 (RSS Reader)",
        description="User agent for feed requests"
    )
    fetch_timeout_seconds: float = Field(10.0, description="Total timeout per feed request")

    # ── Pipeline ───────────────────────────────────────────────────────────
    recency_window_hours: int = Field(48, description="Lookback window used for deduplication")
    summary_max_length: int = Field(200, description="Length of derived descriptions")
    relevance_filter_enabled: bool = Field(True, description="Drop items rejected by the relevance scorer")
    filter_rules_path: Path | None = Field(None, description="Optional YAML file overriding default filter rules")
    seed_sources_path: Path = Field(
        Path("config/default_sources.yaml"),
        description="YAML list of feeds registered by seed-sources"
    )

    # ── Batch ──────────────────────────────────────────────────────────────
    max_concurrent_sources: int = Field(3, description="Sources processed concurrently per chunk")
    batch_delay_seconds: float = Field(1.0, description="Pause between chunks")

    # ── Scheduling ─────────────────────────────────────────────────────────
    fetch_interval_minutes: int = Field(15, description="Ingest interval in production")
    dev_fetch_interval_minutes: int = Field(5, description="Ingest interval in development")
    cleanup_hour: int = Field(2, description="Hour of day the cleanup task runs")
    scheduler_timezone: str = Field("UTC", description="Timezone for the daily cleanup")
    content_retention_days: int = Field(30, description="Age after which stored content is removed")

    # ── Storage ────────────────────────────────────────────────────────────
    database_path: Path = Field(Path("./data/ingest.db"), description="SQLite database file")

    # ── Logging ────────────────────────────────────────────────────────────
    log_level: str = Field("INFO", description="Log level")
    json_logging: bool = Field(True, description="Enable JSON logging")
    log_file: Path | None = Field(None, description="Also write log lines to this file")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator(
        "max_concurrent_sources",
        "fetch_interval_minutes",
        "dev_fetch_interval_minutes",
        "recency_window_hours",
        "summary_max_length",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("fetch_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    @field_validator("batch_delay_seconds")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Batch delay must not be negative")
        return v

    @field_validator("cleanup_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate cleanup hour is a valid hour of day."""
        if not 0 <= v <= 23:
            raise ValueError("Cleanup hour must be between 0 and 23")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def ingest_interval_seconds(self) -> float:
        """Interval between scheduled ingest runs."""
        minutes = self.dev_fetch_interval_minutes if self.is_development else self.fetch_interval_minutes
        return minutes * 60.0


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get application settings."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_filter_config(settings: Settings) -> FilterConfig:
    """Resolve the startup filter configuration."""
    if settings.filter_rules_path:
        return load_filter_config(settings.filter_rules_path)
    return DEFAULT_FILTER_CONFIG
