"""Data models for the opportunity scanner and paper position monitor.

Define the configuration, the per-cycle opportunity records produced by
the scanner, the single mutable ``Position`` owned by the lifecycle, the
immutable closed-trade summary, and the ``RunState`` that is loaded and
saved once per cycle. Prices and money use ``Decimal``; times are epoch
milliseconds.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from polyscout.apps.scanner.snapshots import SnapshotStore
from polyscout.clients.polymarket.models import Market
from polyscout.core.models import ZERO
from polyscout.core.timestamps import MS_PER_HOUR, MS_PER_MINUTE

_DEFAULT_SCAN_LIMIT = 200
_DEFAULT_MAX_CANDIDATES = 40
_DEFAULT_MAX_ALERTS = 5
_DEFAULT_MIN_VOLUME = Decimal(50_000)
_DEFAULT_MIN_LIQUIDITY = Decimal(10_000)
_DEFAULT_MAX_SPREAD = Decimal("0.02")
_DEFAULT_MIN_MOVE = Decimal("0.02")
_DEFAULT_NOTIONAL = Decimal(200)
_DEFAULT_MAX_END_HOURS = 24 * 365 * 2
_DEFAULT_TAKE_PROFIT = Decimal("0.02")
_DEFAULT_STOP_LOSS = Decimal("0.02")
_DEFAULT_MAX_HOLD_MS = 60 * MS_PER_MINUTE
_DEFAULT_POLL_INTERVAL = 30


class ScanMode(Enum):
    """How the scanner picks a token within a market.

    ``REPORT`` matches each token's mid to its published reference price;
    ``MONITOR`` treats binary tokens as complements and takes the one that
    moved most since the last snapshot.
    """

    REPORT = "report"
    MONITOR = "monitor"


class ExitReason(Enum):
    """Why a paper position was closed."""

    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"
    TIME_STOP = "TIME_STOP"


class PositionStatus(Enum):
    """Lifecycle status of a paper position."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


class EventType(Enum):
    """Kinds of records in the per-trade event log."""

    OPEN = "OPEN"
    MARK = "MARK"
    CLOSE = "CLOSE"


def _decimal(values: Mapping[str, Any], key: str, default: Decimal) -> Decimal:
    """Read a Decimal setting, falling back to ``default`` when absent."""
    value = values.get(key)
    return default if value is None else Decimal(str(value))


def _int(values: Mapping[str, Any], key: str, default: int) -> int:
    """Read an integer setting, falling back to ``default`` when absent."""
    value = values.get(key)
    return default if value is None else int(value)


@dataclass(frozen=True)
class ScoreWeights:
    """Weights and saturation thresholds for the opportunity score.

    Args:
        volume_weight: Reward weight for log-scaled 24h volume.
        liquidity_weight: Reward weight for log-scaled liquidity.
        move_weight: Reward weight for the absolute price move.
        spread_weight: Penalty weight for the bid/ask spread.
        slippage_weight: Penalty weight for combined buy+sell slippage.
        log_scale: Decades of volume/liquidity that saturate the reward
            (5 means $100k scores fully).
        strong_move: Absolute move that saturates the move reward.
        bad_spread: Spread that saturates the spread penalty.
        bad_slippage: Combined slippage that saturates the slippage penalty.

    """

    volume_weight: Decimal = Decimal(45)
    liquidity_weight: Decimal = Decimal(25)
    move_weight: Decimal = Decimal(30)
    spread_weight: Decimal = Decimal(25)
    slippage_weight: Decimal = Decimal(25)
    log_scale: Decimal = Decimal(5)
    strong_move: Decimal = Decimal("0.08")
    bad_spread: Decimal = Decimal("0.02")
    bad_slippage: Decimal = Decimal("0.04")

    def __post_init__(self) -> None:
        """Validate that saturation thresholds are positive."""
        for name in ("log_scale", "strong_move", "bad_spread", "bad_slippage"):
            if getattr(self, name) <= ZERO:
                msg = f"{name} must be positive, got {getattr(self, name)}"
                raise ValueError(msg)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ScoreWeights":
        """Build weights from a ``scoring`` settings section.

        Args:
            values: Mapping of field names to numbers; missing keys keep
                their defaults.

        Returns:
            A validated ``ScoreWeights``.

        """
        defaults = cls()
        return cls(
            **{
                name: _decimal(values, name, getattr(defaults, name))
                for name in cls.__dataclass_fields__
            }
        )


@dataclass(frozen=True)
class ScannerConfig:
    """Tunable parameters for scanning and the paper position monitor.

    Defaults match the continuous monitor; the single-shot report loads
    its own looser section from settings.

    Args:
        scan_limit: Number of markets requested from the catalog.
        max_candidates: Eligible markets examined per scan (order-book
            fetches are the expensive step).
        max_alerts: Opportunities returned by a report scan.
        min_volume_24h: Minimum 24h volume in USD.
        min_liquidity: Minimum liquidity in USD.
        max_spread: Maximum bid/ask spread of the chosen token.
        min_move: Minimum absolute move since the last snapshot (monitor only).
        notional: Target entry size in USD for fill simulation.
        max_end_hours: Lookahead window: markets must end within this many hours.
        take_profit: Offset above entry for the take-profit price.
        stop_loss: Offset below entry for the stop-loss price.
        max_hold_ms: Maximum holding time before a time stop.
        poll_interval_seconds: Delay between monitor cycles.

    """

    scan_limit: int = _DEFAULT_SCAN_LIMIT
    max_candidates: int = _DEFAULT_MAX_CANDIDATES
    max_alerts: int = _DEFAULT_MAX_ALERTS
    min_volume_24h: Decimal = _DEFAULT_MIN_VOLUME
    min_liquidity: Decimal = _DEFAULT_MIN_LIQUIDITY
    max_spread: Decimal = _DEFAULT_MAX_SPREAD
    min_move: Decimal = _DEFAULT_MIN_MOVE
    notional: Decimal = _DEFAULT_NOTIONAL
    max_end_hours: int = _DEFAULT_MAX_END_HOURS
    take_profit: Decimal = _DEFAULT_TAKE_PROFIT
    stop_loss: Decimal = _DEFAULT_STOP_LOSS
    max_hold_ms: int = _DEFAULT_MAX_HOLD_MS
    poll_interval_seconds: int = _DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        """Validate ranges that would make the scan meaningless."""
        if self.notional <= ZERO:
            msg = f"notional must be positive, got {self.notional}"
            raise ValueError(msg)
        if self.scan_limit < 1 or self.max_candidates < 1 or self.max_alerts < 1:
            msg = "scan_limit, max_candidates and max_alerts must be >= 1"
            raise ValueError(msg)
        if self.max_hold_ms <= 0:
            msg = f"max_hold_ms must be positive, got {self.max_hold_ms}"
            raise ValueError(msg)
        if self.poll_interval_seconds < 0:
            msg = f"poll_interval_seconds must be >= 0, got {self.poll_interval_seconds}"
            raise ValueError(msg)

    @property
    def lookahead_ms(self) -> int:
        """Return the end-date lookahead window in milliseconds."""
        return self.max_end_hours * MS_PER_HOUR

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ScannerConfig":
        """Build a config from a ``report`` or ``monitor`` settings section.

        ``max_hold_minutes`` in settings is converted to milliseconds.

        Args:
            values: Mapping of setting names to values.

        Returns:
            A validated ``ScannerConfig``.

        """
        d = cls()
        max_hold_minutes = values.get("max_hold_minutes")
        max_hold_ms = (
            d.max_hold_ms
            if max_hold_minutes is None
            else int(Decimal(str(max_hold_minutes)) * MS_PER_MINUTE)
        )
        return cls(
            scan_limit=_int(values, "scan_limit", d.scan_limit),
            max_candidates=_int(values, "max_candidates", d.max_candidates),
            max_alerts=_int(values, "max_alerts", d.max_alerts),
            min_volume_24h=_decimal(values, "min_volume_24h", d.min_volume_24h),
            min_liquidity=_decimal(values, "min_liquidity", d.min_liquidity),
            max_spread=_decimal(values, "max_spread", d.max_spread),
            min_move=_decimal(values, "min_move", d.min_move),
            notional=_decimal(values, "notional", d.notional),
            max_end_hours=_int(values, "max_end_hours", d.max_end_hours),
            take_profit=_decimal(values, "take_profit", d.take_profit),
            stop_loss=_decimal(values, "stop_loss", d.stop_loss),
            max_hold_ms=max_hold_ms,
            poll_interval_seconds=_int(values, "poll_interval_seconds", d.poll_interval_seconds),
        )


@dataclass(frozen=True)
class FillEstimate:
    """Result of walking an order book for a target notional.

    Args:
        avg_price: Volume-weighted average execution price.
        shares: Shares acquired (buy) or sold (sell).
        notional_filled: Currency amount consumed.
        best_price: Price of the first level consumed.
        worst_price: Price of the last level consumed.

    """

    avg_price: Decimal
    shares: Decimal
    notional_filled: Decimal
    best_price: Decimal
    worst_price: Decimal


@dataclass(frozen=True)
class SlippageEstimate:
    """A fill estimate measured against the prevailing top of book.

    Args:
        fill: Simulated fill at the requested notional.
        reference_price: Best ask for buys, best bid for sells.
        slippage: Absolute distance between ``fill.avg_price`` and the reference.

    """

    fill: FillEstimate
    reference_price: Decimal
    slippage: Decimal


@dataclass(frozen=True)
class Opportunity:
    """A scored candidate trade produced by one scan cycle.

    Args:
        market: The catalog market the token belongs to.
        token_id: Chosen outcome token.
        outcome: Outcome label of the chosen token.
        bid: Best bid of the chosen token.
        ask: Best ask of the chosen token.
        mid: Mid price of the chosen token.
        spread: Bid/ask spread of the chosen token.
        prev_mid: Mid at the previous snapshot, or None on first sight.
        move: Signed move since the previous snapshot (zero on first sight).
        reference_price: Catalog reference price for the outcome, if any.
        entry: Simulated buy fill at the configured notional.
        slippage_buy: Buy-side slippage at the notional, if computable.
        slippage_sell: Sell-side slippage at the notional, if computable.
        score: Opportunity score between 0 and 100.
        reason: Short human-readable explanation of the pick.

    """

    market: Market
    token_id: str
    outcome: str
    bid: Decimal
    ask: Decimal
    mid: Decimal
    spread: Decimal
    prev_mid: Decimal | None
    move: Decimal
    reference_price: Decimal | None
    entry: FillEstimate
    slippage_buy: Decimal | None
    slippage_sell: Decimal | None
    score: int
    reason: str

    @property
    def abs_move(self) -> Decimal:
        """Return the absolute move since the previous snapshot."""
        return abs(self.move)


@dataclass(frozen=True)
class EntryFill:
    """Entry execution details captured when a position opens."""

    avg_price: Decimal
    shares: Decimal
    book_bid: Decimal
    book_ask: Decimal
    spread: Decimal
    reason: str


@dataclass(frozen=True)
class ExitRules:
    """Exit thresholds fixed at entry time."""

    take_profit_price: Decimal
    stop_loss_price: Decimal
    max_hold_ms: int


@dataclass(frozen=True)
class Mark:
    """Most recent top-of-book observation for an open position."""

    time: int
    mid: Decimal
    bid: Decimal
    ask: Decimal


@dataclass
class Position:
    """The single simulated position, mutated on every monitoring tick.

    Args:
        position_id: ``t{opened_at}-{market_id}-{token_id}``.
        opened_at: Epoch milliseconds when the position opened.
        market_id: Catalog market identifier.
        question: Market question text.
        url: Public market URL.
        token_id: Outcome token held.
        notional: Configured entry notional in USD.
        entry: Entry execution details.
        exits: Exit thresholds.
        last_mark: Latest mark-to-market observation.
        status: ``OPEN`` while live; ``CLOSED`` once summarised.

    """

    position_id: str
    opened_at: int
    market_id: str
    question: str
    url: str
    token_id: str
    notional: Decimal
    entry: EntryFill
    exits: ExitRules
    last_mark: Mark
    status: PositionStatus = PositionStatus.OPEN

    @property
    def cost_basis(self) -> Decimal:
        """Return entry price times shares."""
        return self.entry.avg_price * self.entry.shares

    def age_ms(self, now: int) -> int:
        """Return milliseconds elapsed since the position opened."""
        return now - self.opened_at

    def unrealized_pnl(self) -> Decimal:
        """Return PnL if sold at the last marked bid."""
        return (self.last_mark.bid - self.entry.avg_price) * self.entry.shares

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dict (decimals as strings)."""
        return {
            "id": self.position_id,
            "openedAt": self.opened_at,
            "marketId": self.market_id,
            "question": self.question,
            "url": self.url,
            "tokenId": self.token_id,
            "notional": str(self.notional),
            "entry": _entry_to_dict(self.entry),
            "exits": _exits_to_dict(self.exits),
            "status": self.status.value,
            "lastMark": _mark_to_dict(self.last_mark),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Position":
        """Rebuild a position from ``to_dict`` output."""
        entry = data["entry"]
        return cls(
            position_id=str(data["id"]),
            opened_at=int(data["openedAt"]),
            market_id=str(data["marketId"]),
            question=str(data.get("question", "")),
            url=str(data.get("url", "")),
            token_id=str(data["tokenId"]),
            notional=Decimal(str(data["notional"])),
            entry=EntryFill(
                avg_price=Decimal(str(entry["avgPrice"])),
                shares=Decimal(str(entry["shares"])),
                book_bid=Decimal(str(entry["bookBid"])),
                book_ask=Decimal(str(entry["bookAsk"])),
                spread=Decimal(str(entry["spread"])),
                reason=str(entry.get("reason", "")),
            ),
            exits=_exits_from_dict(data["exits"]),
            last_mark=_mark_from_dict(data["lastMark"]),
            status=PositionStatus(data.get("status", PositionStatus.OPEN.value)),
        )


@dataclass(frozen=True)
class ClosedTrade:
    """Immutable summary written once when a position closes.

    Args:
        trade_id: Identifier of the closed position.
        opened_at: Entry time in epoch milliseconds.
        closed_at: Exit time in epoch milliseconds.
        market_id: Catalog market identifier.
        question: Market question text.
        url: Public market URL.
        token_id: Outcome token traded.
        notional: Configured entry notional.
        entry_avg: Average entry price.
        exit_avg: Average exit price.
        shares: Shares held.
        pnl: ``(exit_avg - entry_avg) * shares``.
        exit_reason: Rule that triggered the exit.
        exits: Thresholds in force at exit.
        last_mark: Final mark before the exit.
        exit_fill_degraded: True when the exit price fell back to the best
            bid because the book could not absorb the sell.

    """

    trade_id: str
    opened_at: int
    closed_at: int
    market_id: str
    question: str
    url: str
    token_id: str
    notional: Decimal
    entry_avg: Decimal
    exit_avg: Decimal
    shares: Decimal
    pnl: Decimal
    exit_reason: ExitReason
    exits: ExitRules
    last_mark: Mark
    exit_fill_degraded: bool = False

    @property
    def duration_ms(self) -> int:
        """Return how long the position was held."""
        return self.closed_at - self.opened_at

    @property
    def pnl_cents(self) -> Decimal:
        """Return PnL in cents rounded to two places."""
        return (self.pnl * 100).quantize(Decimal("0.01"))

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dict (decimals as strings)."""
        return {
            "id": self.trade_id,
            "openedAt": self.opened_at,
            "closedAt": self.closed_at,
            "durationMs": self.duration_ms,
            "marketId": self.market_id,
            "question": self.question,
            "url": self.url,
            "tokenId": self.token_id,
            "notional": str(self.notional),
            "entryAvg": str(self.entry_avg),
            "exitAvg": str(self.exit_avg),
            "shares": str(self.shares),
            "pnl": str(self.pnl),
            "pnlCents": str(self.pnl_cents),
            "exitReason": self.exit_reason.value,
            "exits": _exits_to_dict(self.exits),
            "lastMark": _mark_to_dict(self.last_mark),
            "exitFillDegraded": self.exit_fill_degraded,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClosedTrade":
        """Rebuild a summary from ``to_dict`` output."""
        return cls(
            trade_id=str(data["id"]),
            opened_at=int(data["openedAt"]),
            closed_at=int(data["closedAt"]),
            market_id=str(data["marketId"]),
            question=str(data.get("question", "")),
            url=str(data.get("url", "")),
            token_id=str(data["tokenId"]),
            notional=Decimal(str(data["notional"])),
            entry_avg=Decimal(str(data["entryAvg"])),
            exit_avg=Decimal(str(data["exitAvg"])),
            shares=Decimal(str(data["shares"])),
            pnl=Decimal(str(data["pnl"])),
            exit_reason=ExitReason(data["exitReason"]),
            exits=_exits_from_dict(data["exits"]),
            last_mark=_mark_from_dict(data["lastMark"]),
            exit_fill_degraded=bool(data.get("exitFillDegraded", False)),
        )


@dataclass(frozen=True)
class TradeEvent:
    """One record in a position's append-only event log.

    Args:
        trade_id: Position identifier the event belongs to.
        time: Epoch milliseconds of the event.
        event_type: ``OPEN``, ``MARK`` or ``CLOSE``.
        payload: Event-specific JSON-compatible fields.

    """

    trade_id: str
    time: int
    event_type: EventType
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LastClosed:
    """Pointer to the most recently closed trade, for the notifier."""

    trade_id: str
    time: int


@dataclass
class RunState:
    """Mutable run state loaded at the start of a cycle and saved at the end.

    Args:
        created_at: When the state was first created, epoch ms.
        last_scan_at: When the last monitor scan ran, epoch ms.
        open_position: The live position, if any.
        last_closed_id: Identifier of the last closed position.
        notifier_last_seen: Last closed id already reported by the notifier.
        snapshots: Per-token price snapshots.

    """

    created_at: int
    last_scan_at: int | None = None
    open_position: Position | None = None
    last_closed_id: str | None = None
    notifier_last_seen: str | None = None
    snapshots: SnapshotStore = field(default_factory=SnapshotStore)


def _entry_to_dict(entry: EntryFill) -> dict[str, Any]:
    return {
        "avgPrice": str(entry.avg_price),
        "shares": str(entry.shares),
        "bookBid": str(entry.book_bid),
        "bookAsk": str(entry.book_ask),
        "spread": str(entry.spread),
        "reason": entry.reason,
    }


def _exits_to_dict(exits: ExitRules) -> dict[str, Any]:
    return {
        "takeProfitPrice": str(exits.take_profit_price),
        "stopLossPrice": str(exits.stop_loss_price),
        "maxHoldMs": exits.max_hold_ms,
    }


def _exits_from_dict(data: Mapping[str, Any]) -> ExitRules:
    return ExitRules(
        take_profit_price=Decimal(str(data["takeProfitPrice"])),
        stop_loss_price=Decimal(str(data["stopLossPrice"])),
        max_hold_ms=int(data["maxHoldMs"]),
    )


def _mark_to_dict(mark: Mark) -> dict[str, Any]:
    return {"t": mark.time, "mid": str(mark.mid), "bid": str(mark.bid), "ask": str(mark.ask)}


def _mark_from_dict(data: Mapping[str, Any]) -> Mark:
    return Mark(
        time=int(data["t"]),
        mid=Decimal(str(data["mid"])),
        bid=Decimal(str(data["bid"])),
        ask=Decimal(str(data["ask"])),
    )
