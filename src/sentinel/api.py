"""FastAPI service exposing incident state.

Read-only: incidents are opened and closed by the alerting workflows, this
API serves what the incident store holds. Timestamps are ISO 8601 strings.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query
from whenever import Instant, TimeDelta

from sentinel.models import Incident, ResolvedIncident, SentinelConfig
from sentinel.store import DsqlIncidentStore, IncidentTracker, create_pool

logger = logging.getLogger("sentinel.api")

# Module-level store, set during lifespan startup
_store: IncidentTracker | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _store
    config = SentinelConfig()
    pool = await create_pool(config.dsql_endpoint, config.dsql_database, config.aws_region)
    _store = DsqlIncidentStore(pool=pool)
    logger.info("Incident API ready")
    try:
        yield
    finally:
        _store = None
        await pool.close()


def get_incident_store() -> IncidentTracker:
    if _store is None:
        raise HTTPException(status_code=503, detail="Incident store not configured")
    return _store


app = FastAPI(title="Sentinel Incidents", lifespan=lifespan)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/incidents/open")
async def open_incidents(
    agent_id: str = Query(min_length=1),
    store: IncidentTracker = Depends(get_incident_store),
) -> list[Incident]:
    """Incidents currently open for an agent, oldest first."""
    return list(await store.read_open_incidents(agent_id))


@app.get("/incidents/resolved")
async def resolved_incidents(
    agent_id: str = Query(min_length=1),
    hours: int = Query(default=24, ge=1, le=720),
    store: IncidentTracker = Depends(get_incident_store),
) -> list[ResolvedIncident]:
    """Incidents resolved within the last ``hours``, newest first."""
    since = Instant.now() - TimeDelta(hours=hours)
    return list(await store.read_resolved_incidents(agent_id, since))
