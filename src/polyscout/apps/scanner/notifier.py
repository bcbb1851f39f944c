"""Report each closed trade exactly once.

The monitor writes a last-closed pointer whenever a position closes. The
notifier compares it with the id it reported last and hands back the new
summary, so a cron-style caller can forward it to a chat or a log.
"""

import logging

from polyscout.apps.scanner.models import ClosedTrade
from polyscout.apps.scanner.protocols import StateStore

logger = logging.getLogger(__name__)


async def pop_unseen_closed_trade(store: StateStore) -> ClosedTrade | None:
    """Return the newest closed trade if it has not been reported yet.

    Mark the trade as seen in the run state before returning it.

    Args:
        store: State store holding the pointer and summaries.

    Returns:
        The closed-trade summary, or None when nothing has closed, the
        latest trade was already reported, or its summary is missing.

    """
    pointer = await store.get_last_closed()
    if pointer is None:
        return None

    state = await store.load_state()
    if state.notifier_last_seen == pointer.trade_id:
        return None

    closed = await store.get_closed_trade(pointer.trade_id)
    if closed is None:
        logger.warning("Last-closed pointer %s has no summary", pointer.trade_id)
        return None

    state.notifier_last_seen = pointer.trade_id
    await store.save_state(state)
    return closed


def format_closed_trade(closed: ClosedTrade) -> str:
    """Render a closed trade as a short multi-line notification."""
    minutes = closed.duration_ms / 60_000
    return "\n".join(
        [
            f"TRADE_CLOSED {closed.trade_id}",
            closed.question,
            (
                f"entry {closed.entry_avg * 100:.2f}c -> exit {closed.exit_avg * 100:.2f}c"
                f" | shares {closed.shares:.2f}"
            ),
            (
                f"PnL ${closed.pnl:.2f} | reason {closed.exit_reason.value}"
                f" | held {minutes:.1f}m"
                + (" | exit at best bid" if closed.exit_fill_degraded else "")
            ),
            closed.url,
        ]
    )
