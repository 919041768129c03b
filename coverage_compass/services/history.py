"""
History Store Service

Persists per-period snapshots so later runs can compute month-over-month
compliance changes and dimension coverage trends.

Contract (HistoryStore):
- upsert(key, snapshot): idempotent overwrite keyed by
  (market, year, month[, dimension])
- query(filters, limit): most-recently-written first
- trend(market, dimension, lookback_months): newest period first
- clear(): bulk delete, returns the number of snapshots removed

Adapters:
- InMemoryHistoryStore: process-local dictionary, used when no database is
  configured and in tests
- PostgresHistoryStore: asyncpg-backed, tables compliance_history and
  dimension_coverage_history (see sql/history_queries.py)

Storage failures surface as HistoryUnavailableError. Callers treat it as
recoverable: MoM is reported as unavailable and the run continues.
"""

import asyncio
import itertools
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple, Type, Union

import asyncpg
from asyncpg import Connection, Pool

from coverage_compass.core.database import get_db_pool
from coverage_compass.models.enums import Dimension, HistoryKind
from coverage_compass.models.schemas import (
    ComplianceSnapshot,
    DimensionCoverageSnapshot,
    SnapshotKey,
)
from coverage_compass.sql.history_queries import (
    COMPLIANCE_COLUMNS,
    COMPLIANCE_TABLE,
    DIMENSION_COVERAGE_COLUMNS,
    DIMENSION_COVERAGE_TABLE,
    JSONB_COLUMNS,
    get_clear_query,
    get_select_query,
    get_trend_query,
    get_upsert_query,
)


logger = logging.getLogger(__name__)

Snapshot = Union[ComplianceSnapshot, DimensionCoverageSnapshot]

DEFAULT_QUERY_LIMIT: int = 100
DEFAULT_TREND_MONTHS: int = 6

SNAPSHOT_MODELS: Dict[HistoryKind, Type[Snapshot]] = {
    HistoryKind.COMPLIANCE: ComplianceSnapshot,
    HistoryKind.DIMENSION_COVERAGE: DimensionCoverageSnapshot,
}

HISTORY_TABLES: Dict[HistoryKind, Tuple[str, List[Tuple[str, str]]]] = {
    HistoryKind.COMPLIANCE: (COMPLIANCE_TABLE, COMPLIANCE_COLUMNS),
    HistoryKind.DIMENSION_COVERAGE: (DIMENSION_COVERAGE_TABLE, DIMENSION_COVERAGE_COLUMNS),
}


class HistoryUnavailableError(Exception):
    """The history backend could not be read or written."""


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def normalize_key(key: Union[SnapshotKey, Tuple[Any, ...]]) -> SnapshotKey:
    """Coerce a key tuple to SnapshotKey with an upper-case market and a plain dimension string."""
    key = SnapshotKey(*key)
    dimension = _plain(key.dimension)
    return SnapshotKey(str(key.market).strip().upper(), int(key.year), int(key.month), dimension)


# =============================================================================
# Contract
# =============================================================================

class HistoryStore(ABC):
    """Asynchronous snapshot store for one history kind."""

    kind: HistoryKind

    @property
    def snapshot_model(self) -> Type[Snapshot]:
        return SNAPSHOT_MODELS[self.kind]

    def _check_snapshot(self, key: SnapshotKey, snapshot: Snapshot) -> None:
        if not isinstance(snapshot, self.snapshot_model):
            raise TypeError(
                f"{self.kind.value} history stores {self.snapshot_model.__name__}, "
                f"got {type(snapshot).__name__}"
            )
        if normalize_key(snapshot.key) != key:
            raise ValueError(f"Snapshot {tuple(snapshot.key)} does not match key {tuple(key)}")

    @abstractmethod
    async def upsert(self, key: SnapshotKey, snapshot: Snapshot) -> Snapshot:
        """Insert or overwrite the snapshot stored under `key`."""

    @abstractmethod
    async def query(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[Snapshot]:
        """Snapshots whose fields equal every filter value, most recently written first."""

    @abstractmethod
    async def trend(
        self,
        market: str,
        dimension: Optional[Union[Dimension, str]] = None,
        lookback_months: int = DEFAULT_TREND_MONTHS,
    ) -> List[Snapshot]:
        """Up to `lookback_months` snapshots of one market, newest period first."""

    @abstractmethod
    async def clear(self) -> int:
        """Delete every snapshot and return how many were removed."""


# =============================================================================
# In-Memory Adapter
# =============================================================================

class InMemoryHistoryStore(HistoryStore):
    """
    Dictionary-backed store.

    Each write takes a sequence number so query() can return snapshots in
    most-recent-write order even when writes share a timestamp.
    """

    def __init__(self, kind: HistoryKind):
        self.kind = kind
        self._entries: Dict[SnapshotKey, Tuple[int, Snapshot]] = {}
        self._sequence = itertools.count(1)

    def __len__(self) -> int:
        return len(self._entries)

    async def upsert(self, key: SnapshotKey, snapshot: Snapshot) -> Snapshot:
        key = normalize_key(key)
        self._check_snapshot(key, snapshot)
        stored = snapshot.model_copy(update={"updatedAt": datetime.now(timezone.utc)})
        self._entries[key] = (next(self._sequence), stored)
        return stored

    async def query(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[Snapshot]:
        filters = dict(filters or {})
        unknown = [name for name in filters if name not in self.snapshot_model.model_fields]
        if unknown:
            raise ValueError(f"Unknown filter fields for {self.kind.value} history: {', '.join(unknown)}")

        matches = [
            (sequence, snapshot)
            for sequence, snapshot in self._entries.values()
            if all(_plain(getattr(snapshot, name)) == _plain(value) for name, value in filters.items())
        ]
        matches.sort(key=lambda entry: entry[0], reverse=True)
        return [snapshot for _, snapshot in matches[:limit]]

    async def trend(
        self,
        market: str,
        dimension: Optional[Union[Dimension, str]] = None,
        lookback_months: int = DEFAULT_TREND_MONTHS,
    ) -> List[Snapshot]:
        market = market.strip().upper()
        dimension = _plain(dimension)
        snapshots = [
            snapshot
            for key, (_, snapshot) in self._entries.items()
            if key.market == market and (dimension is None or key.dimension == dimension)
        ]
        snapshots.sort(key=lambda snapshot: (snapshot.year, snapshot.month), reverse=True)
        return snapshots[:lookback_months]

    async def clear(self) -> int:
        removed = len(self._entries)
        self._entries.clear()
        return removed


# =============================================================================
# PostgreSQL Adapter
# =============================================================================

class PostgresHistoryStore(HistoryStore):
    """
    asyncpg-backed store.

    Uses the injected pool when given, otherwise the application pool from
    core.database. asyncpg and connection errors are wrapped in
    HistoryUnavailableError.
    """

    def __init__(self, kind: HistoryKind, pool: Optional[Pool] = None):
        self.kind = kind
        self._pool = pool
        self._table, self._columns = HISTORY_TABLES[kind]

    async def _run(self, description: str, action: Callable[[Connection], Awaitable[Any]]) -> Any:
        try:
            pool = self._pool if self._pool is not None else await get_db_pool()
            async with pool.acquire() as conn:
                return await action(conn)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, RuntimeError, asyncio.TimeoutError) as e:
            logger.error(f"History {description} on {self._table} failed: {e}")
            raise HistoryUnavailableError(f"History {description} failed: {e}") from e

    def _to_params(self, snapshot: Snapshot) -> List[Any]:
        data = snapshot.model_dump(mode="json")
        return [
            json.dumps(data[field]) if column in JSONB_COLUMNS else data[field]
            for column, field in self._columns
        ]

    def _from_record(self, record: Mapping[str, Any]) -> Snapshot:
        values: Dict[str, Any] = {}
        for column, field in self._columns:
            value = record[column]
            if column in JSONB_COLUMNS and isinstance(value, str):
                value = json.loads(value)
            values[field] = value
        values["updatedAt"] = record.get("updated_at")
        return self.snapshot_model(**values)

    async def upsert(self, key: SnapshotKey, snapshot: Snapshot) -> Snapshot:
        key = normalize_key(key)
        self._check_snapshot(key, snapshot)
        query = get_upsert_query(self._table)
        params = self._to_params(snapshot)

        async def action(conn: Connection) -> None:
            async with conn.transaction():
                await conn.execute(query, *params)

        await self._run("upsert", action)
        return snapshot

    async def query(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[Snapshot]:
        filters = dict(filters or {})
        query = get_select_query(self._table, list(filters))
        params = [_plain(value) for value in filters.values()] + [limit]

        records = await self._run("query", lambda conn: conn.fetch(query, *params))
        return [self._from_record(record) for record in records]

    async def trend(
        self,
        market: str,
        dimension: Optional[Union[Dimension, str]] = None,
        lookback_months: int = DEFAULT_TREND_MONTHS,
    ) -> List[Snapshot]:
        dimension = _plain(dimension)
        query = get_trend_query(self._table, with_dimension=dimension is not None)
        params: List[Any] = [market.strip().upper()]
        if dimension is not None:
            params.append(dimension)
        params.append(lookback_months)

        records = await self._run("trend", lambda conn: conn.fetch(query, *params))
        return [self._from_record(record) for record in records]

    async def clear(self) -> int:
        query = get_clear_query(self._table)
        status = await self._run("clear", lambda conn: conn.execute(query))
        # asyncpg returns the command tag, e.g. "DELETE 12"
        try:
            return int(str(status).split()[-1])
        except (ValueError, IndexError):
            return 0


# =============================================================================
# Store Pair
# =============================================================================

class HistoryStores(NamedTuple):
    """The compliance and dimension coverage stores used by one application."""
    compliance: HistoryStore
    dimension_coverage: HistoryStore

    def for_kind(self, kind: HistoryKind) -> HistoryStore:
        if kind == HistoryKind.COMPLIANCE:
            return self.compliance
        return self.dimension_coverage


def create_history_stores(pool: Optional[Pool] = None) -> HistoryStores:
    """
    Build the store pair: PostgreSQL when a pool is given, in-memory otherwise.
    """
    if pool is not None:
        logger.info("Using PostgreSQL history stores")
        return HistoryStores(
            compliance=PostgresHistoryStore(HistoryKind.COMPLIANCE, pool),
            dimension_coverage=PostgresHistoryStore(HistoryKind.DIMENSION_COVERAGE, pool),
        )

    logger.info("DATABASE_URL not configured, using in-memory history stores")
    return HistoryStores(
        compliance=InMemoryHistoryStore(HistoryKind.COMPLIANCE),
        dimension_coverage=InMemoryHistoryStore(HistoryKind.DIMENSION_COVERAGE),
    )
