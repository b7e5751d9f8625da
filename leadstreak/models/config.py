"""Engine configuration, overridable from LEADSTREAK_* environment variables."""

from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineConfig(BaseSettings):
    """Configuration for the commitment engine and its deadline monitor."""

    model_config = SettingsConfigDict(env_prefix="LEADSTREAK_")

    monitor_interval_seconds: float = 5.0
    monitor_autostart: bool = True

    initial_balance: Decimal = Decimal("4.20")
    deposit_amount: Decimal = Decimal("2.0")
    lead_conversion_stake: Decimal = Decimal("0.2")
    default_recovery_stake: Decimal = Decimal("0.1")
    replacement_deadline_hours: int = 24
    lead_task_deadline_hours: int = 24

    identity_latency_seconds: float = 1.2
    identity_timeout_seconds: float = 10.0

    # "anthropic" needs the llm extra and ANTHROPIC_API_KEY
    advisory_backend: Literal["rules", "anthropic"] = "rules"
    advisory_timeout_seconds: float = 60.0
    advisory_max_retries: int = 2
    advisory_model: str = "claude-3-5-haiku-latest"
    advisory_deep_model: str = "claude-3-5-sonnet-latest"

    journal_db_path: str = ":memory:"
    usd_rate: Decimal = Decimal("100")      # Mock USD price of one stake unit
