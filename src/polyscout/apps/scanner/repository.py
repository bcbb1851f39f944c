"""Async repository for scanner state, snapshots, and trade history.

Wrap the SQLAlchemy async engine and session management. The run state
is a single row rewritten every cycle; snapshots are upserted only for
tokens observed since the last save; trade events are append-only and
closed summaries are written once.
"""

import logging
from collections.abc import Callable
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from polyscout.apps.scanner.models import (
    ClosedTrade,
    EventType,
    LastClosed,
    Position,
    RunState,
    TradeEvent,
)
from polyscout.apps.scanner.orm import (
    LAST_CLOSED_ID,
    RUN_STATE_ID,
    Base,
    ClosedTradeRow,
    LastClosedRow,
    RunStateRow,
    TokenSnapshotRow,
    TradeEventRow,
)
from polyscout.apps.scanner.snapshots import Snapshot, SnapshotStore
from polyscout.core.timestamps import now_ms

logger = logging.getLogger(__name__)


class StateRepository:
    """SQL-backed implementation of the scanner ``StateStore``.

    Args:
        db_url: SQLAlchemy async connection string
            (e.g. ``sqlite+aiosqlite:///data/polyscout.db``).
        clock: Returns the current time in epoch ms; used to stamp a
            freshly created run state.

    """

    def __init__(self, db_url: str, clock: Callable[[], int] = now_ms) -> None:
        """Initialize the repository with an async database engine."""
        self._engine: AsyncEngine = create_async_engine(db_url, echo=False)
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        self._clock = clock

    async def init_db(self) -> None:
        """Create all tables if they do not already exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables initialised")

    async def load_state(self) -> RunState:
        """Return the persisted run state, or a fresh one if none exists.

        Returns:
            ``RunState`` with every stored token snapshot loaded.

        """
        async with self._session_factory() as session:
            row = await session.get(RunStateRow, RUN_STATE_ID)
            result = await session.execute(select(TokenSnapshotRow))
            snapshot_rows = list(result.scalars().all())

        snapshots = SnapshotStore(
            ((s.token_id, _snapshot_from_row(s)) for s in snapshot_rows),
            observed_at=row.snapshots_observed_at if row is not None else 0,
        )
        if row is None:
            return RunState(created_at=self._clock(), snapshots=snapshots)

        return RunState(
            created_at=row.created_at,
            last_scan_at=row.last_scan_at,
            open_position=(
                Position.from_dict(row.open_position) if row.open_position is not None else None
            ),
            last_closed_id=row.last_closed_id,
            notifier_last_seen=row.notifier_last_seen,
            snapshots=snapshots,
        )

    async def save_state(self, state: RunState) -> None:
        """Persist the run state and the snapshots recorded since the last save.

        Args:
            state: Run state to write; its snapshot store is marked clean
                once the transaction commits.

        """
        pending = state.snapshots.pending()
        async with self._session_factory() as session, session.begin():
            await _merge_state(session, state, pending)
        state.snapshots.mark_clean()
        logger.debug("Saved run state with %d snapshot updates", len(pending))

    async def append_trade_event(self, event: TradeEvent) -> None:
        """Append one record to a trade's event log."""
        async with self._session_factory() as session, session.begin():
            session.add(_event_row(event))

    async def get_trade_events(self, trade_id: str) -> list[TradeEvent]:
        """Return a trade's events in the order they were appended.

        Args:
            trade_id: Position identifier.

        Returns:
            List of ``TradeEvent`` records, oldest first.

        """
        stmt = (
            select(TradeEventRow)
            .where(TradeEventRow.trade_id == trade_id)
            .order_by(TradeEventRow.id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = list(result.scalars().all())
        return [
            TradeEvent(
                trade_id=row.trade_id,
                time=row.time,
                event_type=EventType(row.event_type),
                payload=dict(row.payload),
            )
            for row in rows
        ]

    async def record_close(
        self,
        state: RunState,
        closed: ClosedTrade,
        event: TradeEvent | None = None,
    ) -> None:
        """Persist a closed position in a single transaction.

        The summary, the last-closed pointer, the optional ``CLOSE`` event,
        and the run state (with its position slot already cleared) commit
        together, so the stored state never shows an open position whose
        summary has been written.

        Args:
            state: Run state after the close.
            closed: Summary to persist.
            event: ``CLOSE`` record for the trade's event log.

        Raises:
            ValueError: If a summary with the same id was already written.

        """
        pending = state.snapshots.pending()
        async with self._session_factory() as session, session.begin():
            if await session.get(ClosedTradeRow, closed.trade_id) is not None:
                msg = f"Closed trade {closed.trade_id} already recorded"
                raise ValueError(msg)
            session.add(
                ClosedTradeRow(
                    trade_id=closed.trade_id,
                    closed_at=closed.closed_at,
                    summary=closed.to_dict(),
                )
            )
            await session.merge(
                LastClosedRow(id=LAST_CLOSED_ID, trade_id=closed.trade_id, time=closed.closed_at)
            )
            if event is not None:
                session.add(_event_row(event))
            await _merge_state(session, state, pending)
        state.snapshots.mark_clean()
        logger.info("Recorded closed trade %s", closed.trade_id)

    async def get_closed_trade(self, trade_id: str) -> ClosedTrade | None:
        """Return a closed-trade summary by id, or None if absent."""
        async with self._session_factory() as session:
            row = await session.get(ClosedTradeRow, trade_id)
        return ClosedTrade.from_dict(row.summary) if row is not None else None

    async def get_last_closed(self) -> LastClosed | None:
        """Return the last-closed pointer, if any trade has closed."""
        async with self._session_factory() as session:
            row = await session.get(LastClosedRow, LAST_CLOSED_ID)
        return LastClosed(trade_id=row.trade_id, time=row.time) if row is not None else None

    async def close(self) -> None:
        """Dispose the async engine and release all connections."""
        await self._engine.dispose()
        logger.info("Database engine disposed")


def _snapshot_from_row(row: TokenSnapshotRow) -> Snapshot:
    return Snapshot(
        mid=Decimal(str(row.mid)),
        bid=Decimal(str(row.bid)),
        ask=Decimal(str(row.ask)),
        observed_at=row.observed_at,
    )


def _event_row(event: TradeEvent) -> TradeEventRow:
    return TradeEventRow(
        trade_id=event.trade_id,
        time=event.time,
        event_type=event.event_type.value,
        payload=event.payload,
    )


async def _merge_state(
    session: AsyncSession, state: RunState, pending: list[tuple[str, Snapshot]]
) -> None:
    """Upsert the run state row and the given snapshots within ``session``."""
    await session.merge(
        RunStateRow(
            id=RUN_STATE_ID,
            created_at=state.created_at,
            last_scan_at=state.last_scan_at,
            snapshots_observed_at=state.snapshots.observed_at,
            open_position=(
                state.open_position.to_dict() if state.open_position is not None else None
            ),
            last_closed_id=state.last_closed_id,
            notifier_last_seen=state.notifier_last_seen,
        )
    )
    for token_id, snap in pending:
        await session.merge(
            TokenSnapshotRow(
                token_id=token_id,
                mid=float(snap.mid),
                bid=float(snap.bid),
                ask=float(snap.ask),
                observed_at=snap.observed_at,
            )
        )
