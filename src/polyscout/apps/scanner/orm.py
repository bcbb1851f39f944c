"""SQLAlchemy ORM models for the scanner's persistent state.

Five tables back the run: the latest snapshot per token, a single
``run_state`` row, the append-only per-trade event log, immutable
closed-trade summaries, and the single last-closed pointer read by the
notifier.
"""

from typing import Any

from sqlalchemy import JSON, BigInteger, Float, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

RUN_STATE_ID = 1
LAST_CLOSED_ID = 1


class Base(DeclarativeBase):
    """Declarative base class for all scanner ORM models."""


class TokenSnapshotRow(Base):
    """Latest observed top of book for one outcome token.

    Attributes:
        token_id: CLOB token identifier (primary key; last write wins).
        mid: Mid price at observation time.
        bid: Best bid at observation time.
        ask: Best ask at observation time.
        observed_at: Epoch milliseconds of the observation.

    """

    __tablename__ = "token_snapshots"

    token_id: Mapped[str] = mapped_column(String, primary_key=True)
    mid: Mapped[float] = mapped_column(Float)
    bid: Mapped[float] = mapped_column(Float)
    ask: Mapped[float] = mapped_column(Float)
    observed_at: Mapped[int] = mapped_column(BigInteger)


class RunStateRow(Base):
    """The single run-state document.

    Attributes:
        id: Always ``RUN_STATE_ID``.
        created_at: When the state was first created, epoch ms.
        last_scan_at: When the last monitor scan ran, epoch ms.
        snapshots_observed_at: Time of the most recent snapshot write.
        open_position: Serialised open position, or NULL.
        last_closed_id: Identifier of the last closed position.
        notifier_last_seen: Last closed id already reported.

    """

    __tablename__ = "run_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[int] = mapped_column(BigInteger)
    last_scan_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    snapshots_observed_at: Mapped[int] = mapped_column(BigInteger, default=0)
    open_position: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    last_closed_id: Mapped[str | None] = mapped_column(String, nullable=True)
    notifier_last_seen: Mapped[str | None] = mapped_column(String, nullable=True)


class TradeEventRow(Base):
    """One entry in a position's append-only event log.

    Attributes:
        id: Auto-incrementing primary key; preserves append order.
        trade_id: Position identifier (indexed).
        time: Epoch milliseconds of the event.
        event_type: ``OPEN``, ``MARK`` or ``CLOSE``.
        payload: Event-specific fields.

    """

    __tablename__ = "trade_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    trade_id: Mapped[str] = mapped_column(String, index=True)
    time: Mapped[int] = mapped_column(BigInteger)
    event_type: Mapped[str] = mapped_column(String)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON)

    __table_args__ = (Index("ix_trade_events_trade_time", "trade_id", "time"),)


class ClosedTradeRow(Base):
    """Immutable summary of a closed position.

    Attributes:
        trade_id: Position identifier (primary key).
        closed_at: Exit time in epoch milliseconds.
        summary: Serialised ``ClosedTrade``.

    """

    __tablename__ = "closed_trades"

    trade_id: Mapped[str] = mapped_column(String, primary_key=True)
    closed_at: Mapped[int] = mapped_column(BigInteger, index=True)
    summary: Mapped[dict[str, Any]] = mapped_column(JSON)


class LastClosedRow(Base):
    """Pointer to the most recently closed trade.

    Attributes:
        id: Always ``LAST_CLOSED_ID``.
        trade_id: Identifier of the closed trade.
        time: When the pointer was written, epoch ms.

    """

    __tablename__ = "last_closed"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    trade_id: Mapped[str] = mapped_column(String)
    time: Mapped[int] = mapped_column(BigInteger)
