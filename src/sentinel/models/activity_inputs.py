"""Pydantic models for activity inputs.

Every activity takes a single Pydantic model as its input parameter so the
Temporal pydantic data converter rebuilds full models (not plain dicts) on
the worker side.

Pattern:
    @activity.defn
    async def my_activity(self, input: MyActivityInput) -> MyOutput:
        ...

    # In workflow:
    await workflow.execute_activity_method(
        AlertingActivities.my_activity,
        MyActivityInput(field="value"),
        start_to_close_timeout=...,
    )
"""

from pydantic import BaseModel, Field

from .rules import AlertRule  # noqa: TC001


class CheckMetricAlertInput(BaseModel):
    """Input for the check_metric_alert activity."""

    agent_id: str = Field(description="Agent the rule belongs to")
    agent_display: str | None = Field(default=None, description="Name used in message subjects")
    rule: AlertRule = Field(description="Rule to evaluate")
    now_millis: int = Field(ge=0, description="End of the evaluation window, epoch millis")


class CheckDeletedRulesInput(BaseModel):
    """Input for the check_deleted_rules activity."""

    agent_id: str = Field(description="Agent whose open incidents are reconciled")
    rules: list[AlertRule] = Field(description="Rules currently configured for the agent")
    now_millis: int = Field(ge=0, description="Resolution time, epoch millis")
