"""Pydantic models for workflow inputs."""

from pydantic import BaseModel, Field

from .rules import AlertRule  # noqa: TC001


class AlertCheckInput(BaseModel):
    """Input for AlertCheckWorkflow."""

    agent_id: str = Field(description="Agent whose rules this workflow evaluates")
    agent_display: str | None = Field(default=None, description="Name used in message subjects")
    rules: list[AlertRule] = Field(default_factory=list, description="Rules to evaluate")
    check_interval_sec: int = Field(default=60, gt=0, description="Seconds between cycles")
    activity_timeout_sec: int = Field(
        default=60, gt=0, description="start_to_close timeout for each check activity"
    )
    max_cycles_per_run: int | None = Field(
        default=None,
        gt=0,
        description="Continue as new after this many cycles; None defers to the server",
    )
