"""Temporal client and worker utilities.

Clients use the pydantic data converter so workflow and activity inputs
arrive as models rather than dicts.

Usage:
    from sentinel.temporal import create_client, create_worker

    client = await create_client("localhost:7233")
    worker = create_worker(client, AlertingActivities(evaluator))
"""

from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.worker import Worker
from temporalio.worker.workflow_sandbox import SandboxedWorkflowRunner

from sentinel.activities import AlertingActivities
from sentinel.workflows import AlertCheckWorkflow

# Default task queue for alerting workflows
SENTINEL_TASK_QUEUE = "sentinel-alerts"

# All workflows registered with the worker
SENTINEL_WORKFLOWS = [
    AlertCheckWorkflow,
]


async def create_client(
    target_host: str = "localhost:7233",
    namespace: str = "default",
) -> Client:
    """Create a Temporal client with the pydantic data converter.

    Args:
        target_host: Temporal server address (default: localhost:7233)
        namespace: Temporal namespace (default: default)

    Returns:
        Configured Temporal client
    """
    return await Client.connect(
        target_host,
        namespace=namespace,
        data_converter=pydantic_data_converter,
    )


def create_worker(
    client: Client,
    activities: AlertingActivities,
    task_queue: str = SENTINEL_TASK_QUEUE,
) -> Worker:
    """Create a Temporal worker with the alerting workflow and activities.

    Args:
        client: Temporal client (must use the pydantic data converter)
        activities: Activity instance holding the shared evaluator
        task_queue: Task queue name (default: sentinel-alerts)

    Returns:
        Configured Temporal worker
    """
    return Worker(
        client,
        task_queue=task_queue,
        workflows=SENTINEL_WORKFLOWS,
        activities=[
            activities.check_metric_alert,
            activities.check_deleted_rules,
        ],
        workflow_runner=SandboxedWorkflowRunner(
            restrictions=SandboxedWorkflowRunner().restrictions.with_passthrough_modules(
                "sentinel",
                "sentinel_core",
            )
        ),
    )
