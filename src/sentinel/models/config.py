"""Configuration models for the alerting service.

Rollup levels describe how aggregates are stored: each level is coarser
than the previous one, becomes the preferred level for windows longer than
its view threshold, and keeps data for a limited number of hours.
"""

from pathlib import Path

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

_MINUTE_MS = 60_000
_HOUR_MS = 60 * _MINUTE_MS
_DAY_MS = 24 * _HOUR_MS


class RollupConfig(BaseModel):
    """One rollup level."""

    interval_millis: int = Field(gt=0, description="Width of each rollup interval")
    view_threshold_millis: int = Field(
        ge=0, description="Windows at least this long prefer this level over finer ones"
    )


def _default_rollups() -> list[RollupConfig]:
    return [
        RollupConfig(interval_millis=_MINUTE_MS, view_threshold_millis=0),
        RollupConfig(interval_millis=5 * _MINUTE_MS, view_threshold_millis=4 * _HOUR_MS),
        RollupConfig(interval_millis=30 * _MINUTE_MS, view_threshold_millis=_DAY_MS),
        RollupConfig(interval_millis=4 * 60 * _MINUTE_MS, view_threshold_millis=7 * _DAY_MS),
    ]


class RollupSettings(BaseModel):
    """Rollup levels and how long each is retained."""

    levels: list[RollupConfig] = Field(default_factory=_default_rollups, min_length=1)
    expiration_hours: list[int] = Field(
        default=[48, 336, 2160, 17520],
        description="Retention per level; 0 keeps data forever",
    )

    @model_validator(mode="after")
    def _one_expiration_per_level(self) -> "RollupSettings":
        if len(self.expiration_hours) != len(self.levels):
            msg = (
                f"expiration_hours has {len(self.expiration_hours)} entries "
                f"for {len(self.levels)} rollup levels"
            )
            raise ValueError(msg)
        return self


class SentinelConfig(BaseSettings):
    """Main configuration for the alerting service."""

    # AWS Configuration
    aws_region: str = Field(default="eu-west-1", description="AWS region")

    # DSQL Configuration
    dsql_endpoint: str = Field(description="Aurora DSQL cluster endpoint")
    dsql_database: str = Field(default="postgres", description="DSQL database name")

    # Temporal Configuration
    temporal_host: str = Field(default="localhost:7233", description="Temporal server address")
    temporal_namespace: str = Field(default="default", description="Temporal namespace")
    task_queue: str = Field(default="sentinel-alerts", description="Temporal task queue name")

    # Rules
    rules_file: Path = Field(default=Path("rules.json"), description="JSON rule set to evaluate")

    # Evaluation
    check_interval_sec: int = Field(default=60, gt=0, description="Seconds between alert checks")
    max_cycles_per_run: int | None = Field(
        default=None, gt=0, description="Continue alert workflows as new after this many cycles"
    )
    read_timeout_sec: float | None = Field(
        default=30.0, description="Limit on repository reads per evaluation; None disables"
    )
    lock_lease_sec: float | None = Field(
        default=300.0, description="Force-release rule locks held longer than this"
    )
    agent_display: str = Field(default="", description="Fallback display name in subjects")

    # Notifications
    pagerduty_integration_key: str | None = Field(
        default=None, description="PagerDuty Events API v2 routing key"
    )
    pagerduty_events_url: str = Field(
        default="https://events.pagerduty.com/v2/enqueue",
        description="PagerDuty Events API endpoint",
    )
    webhook_url: str | None = Field(default=None, description="Chat webhook for alert messages")
    notification_max_attempts: int = Field(
        default=10, gt=0, description="Attempts per notification while rate limited"
    )
    notification_retry_delay_sec: float = Field(
        default=1.0, ge=0, description="Delay between rate limited attempts"
    )

    # Rollups (nested)
    rollups: RollupSettings = Field(default_factory=RollupSettings)

    model_config = {"env_prefix": "SENTINEL_", "env_nested_delimiter": "__"}
