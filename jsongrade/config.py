"""Grading configuration via Pydantic Settings.

Loads from environment variables (prefix: JSONGRADE_) or a .env file.
All settings have sensible defaults for local runs.

Usage:
    settings = GradingSettings()                # Auto-loads from env / .env
    settings = GradingSettings(workers=8)       # Override in code or tests
"""

from __future__ import annotations

import os

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GradingSettings(BaseSettings):
    """Configuration for a grading run."""

    model_config = SettingsConfigDict(
        env_prefix="JSONGRADE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Inputs ---
    cases_path: str = "test.jsonl"
    prompt_path: str | None = None  # optional system prompt override
    rows: int = 0  # 0 = all cases
    skip_validation: bool = False

    # --- Outputs ---
    results_dir: str = "results"
    dataset: str = "default"  # checkpoint namespace under results_dir

    # --- Parallel execution ---
    workers: int = 4

    # --- Monthly cost projection ---
    projection_users: int = 1000
    projection_requests_per_day: int = 5
    projection_days: int = 30

    @field_validator("workers")
    @classmethod
    def at_least_one_worker(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"workers must be >= 1, got {v}")
        return v

    @field_validator("rows")
    @classmethod
    def non_negative_rows(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"rows must be >= 0, got {v}")
        return v

    @field_validator("cases_path", "prompt_path", "results_dir")
    @classmethod
    def expand_home(cls, v: str | None) -> str | None:
        """Expand ~ in paths."""
        if v is not None and v.startswith("~"):
            return os.path.expanduser(v)
        return v

    @property
    def monthly_requests(self) -> int:
        """Requests per month used for the cost projection."""
        return (
            self.projection_users
            * self.projection_requests_per_day
            * self.projection_days
        )
