"""Pytest configuration and fixtures for the Sentinel tests."""

import pytest
from sentinel_core import LockSet

from sentinel.alerting import AlertEvaluator
from tests.fakes import FakeIncidentStore, FakeMetricStore, RecordingNotifier


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def metric_store() -> FakeMetricStore:
    return FakeMetricStore()


@pytest.fixture
def incident_store() -> FakeIncidentStore:
    return FakeIncidentStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def lock_set() -> LockSet:
    return LockSet()


@pytest.fixture
def evaluator(
    metric_store: FakeMetricStore,
    incident_store: FakeIncidentStore,
    notifier: RecordingNotifier,
    lock_set: LockSet,
) -> AlertEvaluator:
    return AlertEvaluator(
        aggregates=metric_store,
        gauges=metric_store,
        incidents=incident_store,
        notifier=notifier,
        lock_set=lock_set,
    )
