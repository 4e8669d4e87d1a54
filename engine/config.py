"""
Engine configuration.

Uses pydantic-settings so every knob can be overridden from the environment
(prefix ``FINANCE_``) or a local ``.env`` file.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings for the aggregation engine and the demo dashboard."""

    model_config = SettingsConfigDict(
        env_prefix="FINANCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_tree_depth: int = Field(
        default=32,
        ge=2,
        le=1024,
        description="Upper bound on parent-chain traversal when resolving roots"
    )
    uncategorized_label: str = Field(
        default="Uncategorized",
        description="Display name of the bucket for transactions with a missing category"
    )
    currency_label: str = Field(
        default="$",
        description="Currency symbol used by the dashboard"
    )
    seed_path: str = Field(
        default="data/seed.json",
        description="Snapshot file loaded by the demo dashboard"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for engine logs"
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON lines instead of key=value"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level {v!r}")
        return level


@lru_cache()
def get_settings() -> EngineSettings:
    """
    Get engine settings (cached).

    Call get_settings.cache_clear() to reload after changing the environment.
    """
    return EngineSettings()
