"""Tests for AlertEvaluator.check_metric_alert and deleted rule cleanup.

Each test drives the evaluator against in-memory stores and a recording
notifier, advancing ``now_millis`` between cycles the way the workflow does.
"""

import asyncio

import pytest
from whenever import Instant

from sentinel.alerting import AlertEvaluator
from sentinel.models import (
    AlertOutcome,
    AlertRule,
    AlertSeverity,
    GaugeCondition,
    IncidentDetail,
    PercentileCondition,
)
from tests.fakes import FakeIncidentStore, FakeMetricStore, RecordingNotifier

pytestmark = pytest.mark.anyio

AGENT = "checkout-svc"
NOW = 120_000
ONE_MILLI_NS = 1_000_000


def percentile_rule(**overrides) -> AlertRule:
    fields = {
        "transaction_type": "Web",
        "percentile": 95,
        "threshold_millis": 1,
        "time_period_seconds": 60,
    }
    notify_on_resolve = overrides.pop("notify_on_resolve", True)
    fields.update(overrides)
    return AlertRule(
        condition=PercentileCondition(**fields),
        severity=AlertSeverity.CRITICAL,
        notify_on_resolve=notify_on_resolve,
    )


def gauge_rule(**overrides) -> AlertRule:
    fields = {
        "gauge_name": "java.lang:type=Memory:HeapMemoryUsage.used",
        "gauge_display": "Heap used",
        "unit": "milliseconds per second",
        "threshold": 500,
        "time_period_seconds": 60,
    }
    fields.update(overrides)
    return AlertRule(condition=GaugeCondition(**fields))


class TestPercentileBoundaries:
    async def test_one_millisecond_opens(self, evaluator, metric_store, incident_store, notifier):
        rule = percentile_rule()
        metric_store.add_aggregate(NOW, ONE_MILLI_NS)

        outcome = await evaluator.check_metric_alert(AGENT, rule, NOW)

        assert outcome == AlertOutcome.OPENED
        assert rule.key(AGENT) in incident_store.open
        assert len(notifier.sent) == 1
        sent = notifier.sent[0]
        assert sent.rule_key == rule.key(AGENT)
        assert sent.body == (
            "95th percentile over the last 1 minute is greater than or equal to "
            "the alert threshold of 1 millisecond."
        )
        assert sent.severity == AlertSeverity.CRITICAL
        assert not sent.resolved

    async def test_just_below_threshold_does_nothing(
        self, evaluator, metric_store, incident_store, notifier
    ):
        metric_store.add_aggregate(NOW, ONE_MILLI_NS - 1)

        outcome = await evaluator.check_metric_alert(AGENT, percentile_rule(), NOW)

        assert outcome == AlertOutcome.NO_OP
        assert incident_store.open == {}
        assert notifier.sent == []

    async def test_lower_bound_is_inclusive(self, evaluator, metric_store):
        metric_store.add_aggregate(NOW, ONE_MILLI_NS)
        rule = percentile_rule(lower_bound_threshold=True)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.OPENED

    async def test_query_window(self, evaluator, metric_store):
        await evaluator.check_metric_alert(AGENT, percentile_rule(), NOW)

        agent_id, query = metric_store.aggregate_queries[0]
        assert agent_id == AGENT
        assert query.transaction_type == "Web"
        assert query.transaction_name is None
        assert (query.from_millis, query.to_millis) == (60_001, 120_000)
        assert query.rollup_level == 0

    async def test_aggregate_at_previous_window_end_is_excluded(self, evaluator, metric_store):
        metric_store.add_aggregate(60_000, 50 * ONE_MILLI_NS)
        metric_store.add_aggregate(NOW, 10)
        assert await evaluator.check_metric_alert(AGENT, percentile_rule(), NOW) == (
            AlertOutcome.NO_OP
        )

    async def test_aggregates_are_merged(self, evaluator, metric_store):
        metric_store.add_aggregate(70_000, 100, 100, 100)
        metric_store.add_aggregate(110_000, *[3 * ONE_MILLI_NS] * 4)
        rule = percentile_rule(percentile=50)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.OPENED


class TestGaugeBoundaries:
    @pytest.mark.parametrize(
        ("value", "lower_bound", "expected"),
        [
            (500, False, AlertOutcome.OPENED),
            (499, False, AlertOutcome.NO_OP),
            (500, True, AlertOutcome.OPENED),
            (501, True, AlertOutcome.NO_OP),
        ],
    )
    async def test_threshold(self, evaluator, metric_store, value, lower_bound, expected):
        rule = gauge_rule(lower_bound_threshold=lower_bound)
        metric_store.add_gauge(rule.condition.gauge_name, NOW, value)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == expected

    async def test_weighted_average(self, evaluator, metric_store, notifier):
        rule = gauge_rule()
        metric_store.add_gauge(rule.condition.gauge_name, 70_000, 400, weight=1)
        metric_store.add_gauge(rule.condition.gauge_name, 110_000, 600, weight=3)

        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.OPENED
        assert notifier.sent[0].subject == "[Sentinel] Heap used"
        assert notifier.sent[0].body == (
            "Average over the last 1 minute is greater than or equal to "
            "the alert threshold of 500 milliseconds per second."
        )

    async def test_zero_weight_is_no_data(self, evaluator, metric_store):
        rule = gauge_rule()
        metric_store.add_gauge(rule.condition.gauge_name, NOW, 10_000, weight=0)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.NO_OP

    async def test_gauge_query(self, evaluator, metric_store):
        rule = gauge_rule(time_period_seconds=300)
        await evaluator.check_metric_alert(AGENT, rule, NOW)
        assert metric_store.gauge_queries == [
            (AGENT, rule.condition.gauge_name, NOW - 300_000 + 1, NOW, 0)
        ]


class TestIncidentLifecycle:
    async def test_breach_across_cycles_notifies_once(
        self, evaluator, metric_store, incident_store, notifier
    ):
        rule = percentile_rule()
        outcomes = []
        for now in (NOW, NOW + 60_000, NOW + 120_000):
            metric_store.add_aggregate(now, 5 * ONE_MILLI_NS)
            outcomes.append(await evaluator.check_metric_alert(AGENT, rule, now))

        assert outcomes == [AlertOutcome.OPENED, AlertOutcome.NO_OP, AlertOutcome.NO_OP]
        assert len(notifier.sent) == 1
        assert incident_store.open_calls == 1

    async def test_resolution(self, evaluator, metric_store, incident_store, notifier):
        rule = percentile_rule()
        metric_store.add_aggregate(NOW, 5 * ONE_MILLI_NS)
        await evaluator.check_metric_alert(AGENT, rule, NOW)

        metric_store.add_aggregate(NOW + 60_000, 10)
        outcome = await evaluator.check_metric_alert(AGENT, rule, NOW + 60_000)

        assert outcome == AlertOutcome.CLOSED
        assert incident_store.open == {}
        assert [r.rule_key for r in incident_store.resolved] == [rule.key(AGENT)]
        assert incident_store.resolved[0].resolved_at == (
            Instant.from_timestamp_millis(NOW + 60_000).format_iso()
        )
        assert len(notifier.sent) == 2
        resolved = notifier.sent[1]
        assert resolved.resolved
        assert resolved.body.startswith("95th percentile over the last 1 minute is no longer")

        metric_store.add_aggregate(NOW + 120_000, 10)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW + 120_000) == (
            AlertOutcome.NO_OP
        )
        assert len(notifier.sent) == 2

    async def test_resolution_without_notification(self, evaluator, metric_store, notifier):
        rule = percentile_rule(notify_on_resolve=False)
        metric_store.add_aggregate(NOW, 5 * ONE_MILLI_NS)
        await evaluator.check_metric_alert(AGENT, rule, NOW)

        metric_store.add_aggregate(NOW + 60_000, 10)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW + 60_000) == (
            AlertOutcome.CLOSED
        )
        assert len(notifier.sent) == 1

    async def test_no_data_keeps_incident_open(self, evaluator, metric_store, incident_store):
        rule = percentile_rule()
        metric_store.add_aggregate(NOW, 5 * ONE_MILLI_NS)
        await evaluator.check_metric_alert(AGENT, rule, NOW)

        assert await evaluator.check_metric_alert(AGENT, rule, NOW + 600_000) == (
            AlertOutcome.NO_OP
        )
        assert rule.key(AGENT) in incident_store.open

    async def test_no_data_without_incident(self, evaluator, incident_store, notifier):
        assert await evaluator.check_metric_alert(AGENT, percentile_rule(), NOW) == (
            AlertOutcome.NO_OP
        )
        assert incident_store.open_calls == 0
        assert notifier.sent == []

    async def test_agent_display_in_subject(self, evaluator, metric_store, notifier):
        metric_store.add_aggregate(NOW, 5 * ONE_MILLI_NS)
        rule = percentile_rule(transaction_name="/cart")
        await evaluator.check_metric_alert(AGENT, rule, NOW, agent_display="Checkout")
        assert notifier.sent[0].subject == "[Checkout] Web - /cart"


class TestMinimumTransactionCount:
    async def test_too_few_transactions_do_not_open(self, evaluator, metric_store, incident_store):
        metric_store.add_aggregate(NOW, *[5 * ONE_MILLI_NS] * 4)
        rule = percentile_rule(min_transaction_count=5)

        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.NO_OP
        assert incident_store.open_calls == 0

    async def test_counts_are_summed_across_aggregates(self, evaluator, metric_store):
        metric_store.add_aggregate(90_000, *[5 * ONE_MILLI_NS] * 2)
        metric_store.add_aggregate(NOW, *[5 * ONE_MILLI_NS] * 3)
        rule = percentile_rule(min_transaction_count=5)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.OPENED

    async def test_resolution_is_not_gated(self, evaluator, metric_store):
        rule = percentile_rule(min_transaction_count=3)
        metric_store.add_aggregate(NOW, *[5 * ONE_MILLI_NS] * 3)
        await evaluator.check_metric_alert(AGENT, rule, NOW)

        metric_store.add_aggregate(NOW + 60_000, 10)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW + 60_000) == (
            AlertOutcome.CLOSED
        )


class TestFailures:
    async def test_repository_error(self, evaluator, metric_store, incident_store, lock_set):
        rule = percentile_rule()
        metric_store.error = RuntimeError("connection reset")

        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.FAILED
        assert rule.key(AGENT) not in lock_set
        assert incident_store.open == {}

    async def test_read_timeout(self, metric_store, incident_store, notifier, lock_set):
        evaluator = AlertEvaluator(
            aggregates=metric_store,
            gauges=metric_store,
            incidents=incident_store,
            notifier=notifier,
            lock_set=lock_set,
            read_timeout=0.01,
        )
        metric_store.delay = 5
        rule = percentile_rule()

        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.FAILED
        assert rule.key(AGENT) not in lock_set

    async def test_corrupt_histogram(self, evaluator, metric_store, lock_set):
        rule = percentile_rule()
        metric_store.add_aggregate(NOW, ONE_MILLI_NS)
        metric_store.aggregates[0].histogram = b"\x01\x09garbage"

        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.FAILED
        assert len(lock_set) == 0

    async def test_notification_failure_rolls_back_open(
        self, metric_store, incident_store, lock_set
    ):
        failing = RecordingNotifier(fail=True)
        evaluator = AlertEvaluator(
            aggregates=metric_store,
            gauges=metric_store,
            incidents=incident_store,
            notifier=failing,
            lock_set=lock_set,
        )
        rule = percentile_rule()
        metric_store.add_aggregate(NOW, 5 * ONE_MILLI_NS)

        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.FAILED
        assert incident_store.open == {}
        assert incident_store.discarded == [rule.key(AGENT)]
        assert rule.key(AGENT) not in lock_set

        # Next cycle retries once the transport is back
        failing.fail = False
        metric_store.add_aggregate(NOW + 60_000, 5 * ONE_MILLI_NS)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW + 60_000) == (
            AlertOutcome.OPENED
        )
        assert len(failing.sent) == 1

    async def test_resolve_notification_failure_keeps_incident(
        self, metric_store, incident_store
    ):
        notifier = RecordingNotifier()
        evaluator = AlertEvaluator(
            aggregates=metric_store,
            gauges=metric_store,
            incidents=incident_store,
            notifier=notifier,
        )
        rule = percentile_rule()
        metric_store.add_aggregate(NOW, 5 * ONE_MILLI_NS)
        await evaluator.check_metric_alert(AGENT, rule, NOW)

        notifier.fail = True
        metric_store.add_aggregate(NOW + 60_000, 10)
        assert await evaluator.check_metric_alert(AGENT, rule, NOW + 60_000) == (
            AlertOutcome.FAILED
        )
        assert rule.key(AGENT) in incident_store.open

    async def test_concurrent_open_is_noop(
        self, evaluator, metric_store, incident_store, notifier, monkeypatch
    ):
        rule = percentile_rule()
        key = rule.key(AGENT)
        existing = await incident_store.open_incident(
            key,
            IncidentDetail(
                agent_id=AGENT, condition=rule.condition, severity=rule.severity, message="x"
            ),
            Instant.from_timestamp_millis(NOW),
        )

        async def not_found(rule_key):
            return None

        # Another evaluator opened it between our read and our insert
        monkeypatch.setattr(incident_store, "read_open_incident", not_found)
        metric_store.add_aggregate(NOW, 5 * ONE_MILLI_NS)

        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == AlertOutcome.NO_OP
        assert notifier.sent == []
        assert incident_store.open[key] == existing
        assert incident_store.discarded == []


class TestLocking:
    async def test_held_lock_skips(self, evaluator, metric_store, lock_set):
        rule = percentile_rule()
        token = lock_set.try_acquire(rule.key(AGENT))

        assert await evaluator.check_metric_alert(AGENT, rule, NOW) == (
            AlertOutcome.SKIPPED_LOCKED
        )
        assert metric_store.aggregate_queries == []
        assert lock_set.holder(rule.key(AGENT)) == token

    async def test_overlapping_evaluations(self, evaluator, metric_store, incident_store, notifier):
        rule = percentile_rule()
        metric_store.add_aggregate(NOW, 5 * ONE_MILLI_NS)
        metric_store.release.clear()

        first = asyncio.create_task(evaluator.check_metric_alert(AGENT, rule, NOW))
        await metric_store.entered.wait()
        second = await evaluator.check_metric_alert(AGENT, rule, NOW)
        metric_store.release.set()

        assert second == AlertOutcome.SKIPPED_LOCKED
        assert await first == AlertOutcome.OPENED
        assert incident_store.open_calls == 1
        assert len(notifier.sent) == 1

    async def test_different_rules_do_not_contend(self, evaluator, metric_store):
        metric_store.add_aggregate(NOW, 5 * ONE_MILLI_NS)
        metric_store.release.clear()
        rule_a = percentile_rule()
        rule_b = percentile_rule(percentile=99)

        first = asyncio.create_task(evaluator.check_metric_alert(AGENT, rule_a, NOW))
        await metric_store.entered.wait()
        second = asyncio.create_task(evaluator.check_metric_alert(AGENT, rule_b, NOW))
        await asyncio.sleep(0)
        metric_store.release.set()

        assert await asyncio.gather(first, second) == [AlertOutcome.OPENED, AlertOutcome.OPENED]


class TestInvalidInput:
    async def test_empty_agent(self, evaluator):
        with pytest.raises(ValueError, match="agent_id"):
            await evaluator.check_metric_alert("", percentile_rule(), NOW)

    async def test_negative_time(self, evaluator):
        with pytest.raises(ValueError, match="now_millis"):
            await evaluator.check_metric_alert(AGENT, percentile_rule(), -1)

    async def test_not_a_rule(self, evaluator):
        with pytest.raises(TypeError):
            await evaluator.check_metric_alert(AGENT, {"condition": {}}, NOW)

    async def test_invalid_input_takes_no_lock(self, evaluator, lock_set):
        with pytest.raises(ValueError):
            await evaluator.check_metric_alert(AGENT, percentile_rule(), -1)
        assert len(lock_set) == 0


class TestDeletedRules:
    async def _open(self, incident_store: FakeIncidentStore, agent_id: str, rule: AlertRule):
        await incident_store.open_incident(
            rule.key(agent_id),
            IncidentDetail(
                agent_id=agent_id, condition=rule.condition, severity=rule.severity, message="m"
            ),
            Instant.from_timestamp_millis(NOW),
        )

    async def test_closes_incidents_of_removed_rules(self, evaluator, incident_store, notifier):
        kept = percentile_rule()
        removed = percentile_rule(percentile=99)
        await self._open(incident_store, AGENT, kept)
        await self._open(incident_store, AGENT, removed)
        await self._open(incident_store, "other-agent", removed)

        closed = await evaluator.check_for_deleted_rules(AGENT, [kept], NOW + 60_000)

        assert closed == [removed.key(AGENT)]
        assert set(incident_store.open) == {kept.key(AGENT), removed.key("other-agent")}
        assert notifier.sent == []

    async def test_skips_locked_keys(self, evaluator, incident_store, lock_set):
        removed = percentile_rule(percentile=99)
        await self._open(incident_store, AGENT, removed)
        lock_set.try_acquire(removed.key(AGENT))

        assert await evaluator.check_for_deleted_rules(AGENT, [], NOW) == []
        assert removed.key(AGENT) in incident_store.open

    async def test_changed_rule_counts_as_deleted(self, evaluator, incident_store):
        original = percentile_rule(threshold_millis=100)
        await self._open(incident_store, AGENT, original)

        edited = percentile_rule(threshold_millis=200)
        closed = await evaluator.check_for_deleted_rules(AGENT, [edited], NOW)

        assert closed == [original.key(AGENT)]


async def test_works_without_injected_lock_set():
    store = FakeMetricStore()
    evaluator = AlertEvaluator(
        aggregates=store,
        gauges=store,
        incidents=FakeIncidentStore(),
        notifier=RecordingNotifier(),
    )
    store.add_aggregate(NOW, ONE_MILLI_NS)
    assert await evaluator.check_metric_alert(AGENT, percentile_rule(), NOW) == (
        AlertOutcome.OPENED
    )
