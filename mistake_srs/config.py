"""
Configuration for the SRS engine.

Defaults live in constants.py; load_config() overlays environment variables
(optionally from a .env file).

Environment:
    MONGO_URI               MongoDB connection string
    SRS_DB_NAME             Database name (default: practice_platform)
    TEST_MODE               "true" switches to the test_ database
    SRS_USE_TRANSACTIONS    "false" for standalone servers without replica sets
    SRS_TIMEZONE            Reference timezone for day keys
    SRS_LEARNING_STEPS      Comma-separated learning steps in days, e.g. "1,3"
    SRS_GRADUATION_DAYS, SRS_DEFAULT_EASE, SRS_MIN_EASE, SRS_MAX_EASE,
    SRS_EASE_BONUS, SRS_EASE_PENALTY, SRS_RETENTION_DAYS,
    SRS_ARCHIVE_BATCH_SIZE, SRS_DUE_QUERY_LIMIT
"""

from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from mistake_srs import constants


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class SrsConfig(BaseModel):
    """Connection settings and scheduling tuning."""

    # Persistence
    mongo_uri: Optional[str] = None
    db_name: str = "practice_platform"
    test_mode: bool = False
    use_transactions: bool = True

    # Day keys
    timezone: str = constants.REFERENCE_TIMEZONE

    # Algorithm tuning
    learning_steps: list[int] = Field(default_factory=lambda: list(constants.LEARNING_STEPS))
    graduation_threshold_days: int = Field(default=constants.GRADUATION_THRESHOLD_DAYS, ge=1)
    default_ease: float = constants.DEFAULT_EASE
    min_ease: float = constants.MIN_EASE
    max_ease: float = constants.MAX_EASE
    ease_bonus: float = Field(default=constants.EASE_BONUS, ge=0)
    ease_penalty: float = Field(default=constants.EASE_PENALTY, ge=0)

    # Housekeeping
    overdue_retention_days: int = Field(default=constants.OVERDUE_RETENTION_DAYS, ge=1)
    archive_batch_size: int = Field(default=constants.ARCHIVE_BATCH_SIZE, ge=1)
    due_query_limit: int = Field(default=constants.DUE_QUERY_LIMIT, ge=0)  # 0 = unbounded

    @field_validator("learning_steps", mode="before")
    @classmethod
    def _parse_steps(cls, value):
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("learning_steps")
    @classmethod
    def _check_steps(cls, value: list[int]) -> list[int]:
        if not value:
            raise ValueError("learning_steps must contain at least one step")
        if any(step < 1 for step in value):
            raise ValueError("learning_steps must be positive day counts")
        return value

    @model_validator(mode="after")
    def _check_ease_range(self) -> "SrsConfig":
        if not (self.min_ease <= self.default_ease <= self.max_ease):
            raise ValueError(
                f"ease bounds out of order: min={self.min_ease} "
                f"default={self.default_ease} max={self.max_ease}"
            )
        return self

    @property
    def database_name(self) -> str:
        """Database to connect to, honoring TEST_MODE."""
        if self.test_mode:
            return f"test_{self.db_name}"
        return self.db_name


# Env var -> config field
_ENV_FIELDS = {
    "MONGO_URI": "mongo_uri",
    "SRS_DB_NAME": "db_name",
    "SRS_TIMEZONE": "timezone",
    "SRS_LEARNING_STEPS": "learning_steps",
    "SRS_GRADUATION_DAYS": "graduation_threshold_days",
    "SRS_DEFAULT_EASE": "default_ease",
    "SRS_MIN_EASE": "min_ease",
    "SRS_MAX_EASE": "max_ease",
    "SRS_EASE_BONUS": "ease_bonus",
    "SRS_EASE_PENALTY": "ease_penalty",
    "SRS_RETENTION_DAYS": "overdue_retention_days",
    "SRS_ARCHIVE_BATCH_SIZE": "archive_batch_size",
    "SRS_DUE_QUERY_LIMIT": "due_query_limit",
}


def load_config(**overrides) -> SrsConfig:
    """
    Build the engine configuration from the environment.

    Args:
        **overrides: Field values that win over the environment

    Returns:
        Validated SrsConfig
    """
    load_dotenv()

    values = {}
    for env_name, field in _ENV_FIELDS.items():
        raw = os.getenv(env_name)
        if raw is not None and raw != "":
            values[field] = raw

    values["test_mode"] = _env_flag("TEST_MODE", False)
    values["use_transactions"] = _env_flag("SRS_USE_TRANSACTIONS", True)
    values.update(overrides)

    return SrsConfig(**values)
