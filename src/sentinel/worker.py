"""Alerting worker entry point.

Starts a Temporal worker that runs the alert check workflows and
activities. On boot it signal-with-starts one AlertCheckWorkflow per agent in the
rules file (fixed workflow IDs), so rule edits reach running workflows,
then enters the polling loop.

Usage:
    python -m sentinel.worker

Configuration comes from SENTINEL_* environment variables (see
sentinel.models.config.SentinelConfig), e.g.:
    SENTINEL_DSQL_ENDPOINT      - Aurora DSQL cluster endpoint (required)
    SENTINEL_TEMPORAL_HOST      - Temporal server address
    SENTINEL_RULES_FILE         - JSON rule set
    SENTINEL_WEBHOOK_URL        - chat webhook for alert messages (optional)
    SENTINEL_PAGERDUTY_INTEGRATION_KEY - PagerDuty routing key (optional)
"""

import asyncio
import logging
import signal

import httpx
from sentinel_core import LockSet
from temporalio.client import Client  # noqa: TC002

from sentinel.activities import AlertingActivities
from sentinel.alerting import AlertEvaluator, RollupLevels
from sentinel.models import AlertCheckInput, RuleSet, SentinelConfig
from sentinel.notify import FanoutNotifier, Notifier, PagerDutyNotifier, WebhookNotifier
from sentinel.store import (
    DsqlAggregateRepository,
    DsqlGaugeRepository,
    DsqlIncidentStore,
    create_pool,
)
from sentinel.temporal import create_client, create_worker

logger = logging.getLogger(__name__)


def workflow_id_for(agent_id: str) -> str:
    """Deterministic workflow ID for idempotent starts."""
    return f"sentinel-alerts-{agent_id}"


def load_rule_set(config: SentinelConfig) -> RuleSet:
    """Read and validate the rules file."""
    return RuleSet.model_validate_json(config.rules_file.read_text())


def build_notifier(config: SentinelConfig, http: httpx.AsyncClient) -> FanoutNotifier:
    """Fan out to every notifier the configuration enables."""
    notifiers: list[Notifier] = []
    if config.pagerduty_integration_key:
        notifiers.append(
            PagerDutyNotifier(
                client=http,
                integration_key=config.pagerduty_integration_key,
                events_url=config.pagerduty_events_url,
                max_attempts=config.notification_max_attempts,
                retry_delay=config.notification_retry_delay_sec,
            )
        )
    if config.webhook_url:
        notifiers.append(WebhookNotifier(client=http, url=config.webhook_url))
    return FanoutNotifier(notifiers)


async def start_alert_workflows(
    client: Client,
    config: SentinelConfig,
    rule_set: RuleSet,
) -> None:
    """Start one AlertCheckWorkflow per agent, or update the running one.

    Each start is a signal-with-start of ``update_rules``: a new workflow
    gets the rules as input, and one already running under the fixed ID gets
    the current rules file through the signal. Safe to call on every boot.
    """
    for agent in rule_set.agents:
        workflow_id = workflow_id_for(agent.agent_id)
        logger.info("Starting AlertCheckWorkflow: %s (%d rules)", workflow_id, len(agent.rules))
        await client.start_workflow(
            "AlertCheckWorkflow",
            AlertCheckInput(
                agent_id=agent.agent_id,
                agent_display=agent.agent_display or config.agent_display or None,
                rules=agent.rules,
                check_interval_sec=config.check_interval_sec,
                max_cycles_per_run=config.max_cycles_per_run,
            ),
            id=workflow_id,
            task_queue=config.task_queue,
            start_signal="update_rules",
            start_signal_args=[agent.rules],
        )
    logger.info("All alert workflows started")


async def run_worker() -> None:
    """Start workflows, then run the alerting worker until interrupted."""
    config = SentinelConfig()
    rule_set = load_rule_set(config)

    logger.info(
        "Starting alerting worker: address=%s namespace=%s task_queue=%s",
        config.temporal_host,
        config.temporal_namespace,
        config.task_queue,
    )

    pool = await create_pool(config.dsql_endpoint, config.dsql_database, config.aws_region)
    async with httpx.AsyncClient(timeout=10.0) as http:
        try:
            evaluator = AlertEvaluator(
                aggregates=DsqlAggregateRepository(pool=pool),
                gauges=DsqlGaugeRepository(pool=pool),
                incidents=DsqlIncidentStore(pool=pool),
                notifier=build_notifier(config, http),
                lock_set=LockSet(lease_seconds=config.lock_lease_sec),
                rollups=RollupLevels(config.rollups),
                read_timeout=config.read_timeout_sec,
                agent_display=config.agent_display or None,
            )

            client = await create_client(config.temporal_host, config.temporal_namespace)
            await start_alert_workflows(client, config, rule_set)

            worker = create_worker(client, AlertingActivities(evaluator), config.task_queue)
            logger.info("Alerting worker polling for tasks")
            await worker.run()
        finally:
            await pool.close()


def main() -> None:
    """Entry point for the worker process."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    loop = asyncio.new_event_loop()

    # Graceful shutdown on SIGTERM/SIGINT
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda: loop.stop())

    try:
        loop.run_until_complete(run_worker())
    except KeyboardInterrupt:
        logger.info("Worker interrupted, shutting down")
    finally:
        loop.close()
        logger.info("Worker stopped")


if __name__ == "__main__":
    main()
