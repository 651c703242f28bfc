"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class PaymentsConfig(BaseSettings):
    api_url: str = "http://localhost:54321/functions/v1"
    api_key: str = ""
    timeout_seconds: float = 30.0

    model_config = {"env_prefix": "PAYMENTS_"}


class WorkflowConfig(BaseSettings):
    platform_fee_rate: Decimal = Decimal("0.15")
    consultation_response_hours: int = 48
    price_adjustment_response_hours: int = 72
    sweep_interval_seconds: int = 300
    max_active_orders: int | None = None  # None = unlimited
    max_daily_orders: int | None = None

    model_config = {"env_prefix": "WORKFLOW_"}


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/custom_orders.db"
    log_level: str = "INFO"
    payments: PaymentsConfig = Field(default_factory=PaymentsConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    payments = PaymentsConfig(**y.get("payments", {}))
    workflow = WorkflowConfig(**y.get("workflow", {}))
    db_url = y.get("database", {}).get("url", "sqlite+aiosqlite:///data/custom_orders.db")
    return Settings(
        database_url=db_url,
        log_level=y.get("log_level", "INFO"),
        payments=payments,
        workflow=workflow,
    )
