"""Tests for the incident API.

The DSQL-backed store is replaced through FastAPI dependency overrides; the
client is used without its context manager so the lifespan (which connects
to DSQL) does not run.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from whenever import Instant, TimeDelta

from sentinel.api import app, get_incident_store
from sentinel.models import AlertRule, IncidentDetail, PercentileCondition
from tests.fakes import FakeIncidentStore


def _rule(percentile: float) -> AlertRule:
    return AlertRule(
        condition=PercentileCondition(
            transaction_type="Web",
            percentile=percentile,
            threshold_millis=250,
            time_period_seconds=300,
        )
    )


def _open(store: FakeIncidentStore, agent_id: str, rule: AlertRule, opened_at: Instant) -> None:
    detail = IncidentDetail(
        agent_id=agent_id,
        condition=rule.condition,
        severity=rule.severity,
        message="alert text",
    )
    asyncio.run(store.open_incident(rule.key(agent_id), detail, opened_at))


@pytest.fixture
def store() -> FakeIncidentStore:
    return FakeIncidentStore()


@pytest.fixture
def client(store: FakeIncidentStore):
    app.dependency_overrides[get_incident_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_open_incidents(client, store):
    now = Instant.now()
    _open(store, "checkout", _rule(95), now)
    _open(store, "search", _rule(99), now)

    response = client.get("/incidents/open", params={"agent_id": "checkout"})

    assert response.status_code == 200
    [incident] = response.json()
    assert incident["rule_key"] == _rule(95).key("checkout")
    assert incident["opened_at"] == now.format_iso()
    assert incident["detail"]["condition"]["kind"] == "percentile"
    assert incident["detail"]["message"] == "alert text"


def test_resolved_incidents_window(client, store):
    now = Instant.now()
    recent, old = _rule(95), _rule(99)
    _open(store, "checkout", recent, now - TimeDelta(hours=3))
    _open(store, "checkout", old, now - TimeDelta(hours=60))
    asyncio.run(store.close_incident(recent.key("checkout"), resolved_at=now - TimeDelta(hours=1)))
    asyncio.run(store.close_incident(old.key("checkout"), resolved_at=now - TimeDelta(hours=48)))

    day = client.get("/incidents/resolved", params={"agent_id": "checkout"})
    week = client.get("/incidents/resolved", params={"agent_id": "checkout", "hours": 168})

    assert [r["rule_key"] for r in day.json()] == [recent.key("checkout")]
    assert len(week.json()) == 2


@pytest.mark.parametrize("hours", [0, 721])
def test_resolved_hours_bounds(client, hours):
    response = client.get("/incidents/resolved", params={"agent_id": "checkout", "hours": hours})
    assert response.status_code == 422


def test_agent_id_required(client):
    assert client.get("/incidents/open").status_code == 422


def test_store_not_configured():
    app.dependency_overrides.clear()
    response = TestClient(app).get("/incidents/open", params={"agent_id": "checkout"})
    assert response.status_code == 503
