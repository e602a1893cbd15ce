"""Incident tracking.

``IncidentTracker`` is what the evaluator needs from a store; the DSQL
implementation keeps one ``open_incident`` row per rule key and moves rows
into ``resolved_incident`` when they close.

Date/Time: Uses `whenever` (UTC-first). Converts to/from Python datetime for
asyncpg TIMESTAMPTZ compatibility.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import uuid4

import asyncpg
from whenever import Instant

from sentinel.models import Incident, IncidentDetail, ResolvedIncident

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger("sentinel.store.incidents")


class IncidentConflictError(Exception):
    """Raised when opening an incident for a rule key that already has one."""

    def __init__(self, rule_key: str) -> None:
        self.rule_key = rule_key
        super().__init__(f"An incident is already open for {rule_key}")


@runtime_checkable
class IncidentTracker(Protocol):
    """Per-rule-key incident state."""

    async def open_incident(
        self, rule_key: str, detail: IncidentDetail, opened_at: Instant
    ) -> Incident:
        """Create the open record. Raises IncidentConflictError if one exists."""
        ...

    async def read_open_incident(self, rule_key: str) -> Incident | None: ...

    async def close_incident(self, rule_key: str, *, resolved_at: Instant | None = None) -> None:
        """Move the open record to history. No-op if nothing is open."""
        ...

    async def discard_incident(self, rule_key: str, token: str) -> None:
        """Delete the open record without history, only if ``token`` matches."""
        ...

    async def read_open_incidents(self, agent_id: str) -> Sequence[Incident]: ...

    async def read_resolved_incidents(
        self, agent_id: str, since: Instant
    ) -> Sequence[ResolvedIncident]: ...


def _incident_from_row(row) -> Incident:
    return Incident(
        rule_key=row["rule_key"],
        token=row["token"],
        opened_at=Instant.from_py_datetime(row["opened_at"]).format_iso(),
        detail=IncidentDetail.model_validate_json(row["detail"]),
    )


def _resolved_from_row(row) -> ResolvedIncident:
    return ResolvedIncident(
        rule_key=row["rule_key"],
        token=row["token"],
        opened_at=Instant.from_py_datetime(row["opened_at"]).format_iso(),
        resolved_at=Instant.from_py_datetime(row["resolved_at"]).format_iso(),
        detail=IncidentDetail.model_validate_json(row["detail"]),
    )


class DsqlIncidentStore:
    """Incident tracker backed by Aurora DSQL."""

    def __init__(self, *, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def open_incident(
        self, rule_key: str, detail: IncidentDetail, opened_at: Instant
    ) -> Incident:
        incident = Incident(
            rule_key=rule_key,
            token=uuid4().hex,
            opened_at=opened_at.format_iso(),
            detail=detail,
        )
        async with self._pool.acquire() as conn:
            try:
                await conn.execute(
                    """
                    INSERT INTO open_incident (
                        rule_key, agent_id, token, opened_at, severity, detail
                    ) VALUES ($1, $2, $3, $4, $5, $6)
                    """,
                    rule_key,
                    detail.agent_id,
                    incident.token,
                    opened_at.py_datetime(),
                    detail.severity.value,
                    detail.model_dump_json(),
                )
            except asyncpg.UniqueViolationError as e:
                raise IncidentConflictError(rule_key) from e
        logger.info("Opened incident %s for %s", incident.token, rule_key)
        return incident

    async def read_open_incident(self, rule_key: str) -> Incident | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT rule_key, token, opened_at, detail
                FROM open_incident
                WHERE rule_key = $1
                """,
                rule_key,
            )
        return _incident_from_row(row) if row else None

    async def close_incident(self, rule_key: str, *, resolved_at: Instant | None = None) -> None:
        resolved_at = resolved_at or Instant.now()
        async with self._pool.acquire() as conn, conn.transaction():
            row = await conn.fetchrow(
                """
                DELETE FROM open_incident
                WHERE rule_key = $1
                RETURNING rule_key, agent_id, token, opened_at, severity, detail
                """,
                rule_key,
            )
            if row is None:
                logger.debug("No open incident to close for %s", rule_key)
                return
            await conn.execute(
                """
                INSERT INTO resolved_incident (
                    id, rule_key, agent_id, token, opened_at, resolved_at, severity, detail
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                """,
                str(uuid4()),
                row["rule_key"],
                row["agent_id"],
                row["token"],
                row["opened_at"],
                resolved_at.py_datetime(),
                row["severity"],
                row["detail"],
            )
        logger.info("Resolved incident %s for %s", row["token"], rule_key)

    async def discard_incident(self, rule_key: str, token: str) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                "DELETE FROM open_incident WHERE rule_key = $1 AND token = $2",
                rule_key,
                token,
            )
        logger.info("Discarded incident %s for %s", token, rule_key)

    async def read_open_incidents(self, agent_id: str) -> list[Incident]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT rule_key, token, opened_at, detail
                FROM open_incident
                WHERE agent_id = $1
                ORDER BY opened_at
                """,
                agent_id,
            )
        return [_incident_from_row(row) for row in rows]

    async def read_resolved_incidents(
        self, agent_id: str, since: Instant
    ) -> list[ResolvedIncident]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT rule_key, token, opened_at, resolved_at, detail
                FROM resolved_incident
                WHERE agent_id = $1 AND resolved_at >= $2
                ORDER BY resolved_at DESC
                """,
                agent_id,
                since.py_datetime(),
            )
        return [_resolved_from_row(row) for row in rows]
