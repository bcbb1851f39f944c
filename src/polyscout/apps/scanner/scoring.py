"""Opportunity scoring.

Combine liquidity, activity, momentum and execution cost into a single
0-100 score. Volume and liquidity are log-scaled so that ten times the
size is not ten times as attractive; spread and slippage are linear
penalties.
"""

from decimal import ROUND_HALF_UP, Decimal

from polyscout.apps.scanner.models import ScoreWeights
from polyscout.core.models import ONE, ZERO

_MAX_SCORE = Decimal(100)
DEFAULT_WEIGHTS = ScoreWeights()


def clamp01(value: Decimal) -> Decimal:
    """Clamp a value into ``[0, 1]``."""
    return max(ZERO, min(ONE, value))


def _log_score(amount: Decimal, scale: Decimal) -> Decimal:
    return clamp01((ONE + max(amount, ZERO)).log10() / scale)


def opportunity_score(  # noqa: PLR0913
    spread: Decimal,
    volume_24h: Decimal,
    liquidity: Decimal,
    abs_move: Decimal,
    slippage_buy: Decimal | None,
    slippage_sell: Decimal | None,
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> int:
    """Score a candidate between 0 and 100.

    Missing slippage (for example a sell side too thin to simulate)
    contributes no penalty.

    Args:
        spread: Best ask minus best bid.
        volume_24h: 24h volume in USD.
        liquidity: Market liquidity in USD.
        abs_move: Absolute mid move since the last snapshot.
        slippage_buy: Buy-side slippage at the configured notional.
        slippage_sell: Sell-side slippage at the configured notional.
        weights: Weights and saturation thresholds.

    Returns:
        Integer score in ``[0, 100]``.

    """
    volume_score = _log_score(volume_24h, weights.log_scale)
    liquidity_score = _log_score(liquidity, weights.log_scale)
    move_score = clamp01(abs(abs_move) / weights.strong_move)
    spread_penalty = clamp01(spread / weights.bad_spread)
    total_slippage = (slippage_buy or ZERO) + (slippage_sell or ZERO)
    slippage_penalty = clamp01(total_slippage / weights.bad_slippage)

    raw = (
        weights.volume_weight * volume_score
        + weights.liquidity_weight * liquidity_score
        + weights.move_weight * move_score
        - weights.spread_weight * spread_penalty
        - weights.slippage_weight * slippage_penalty
    )
    bounded = max(ZERO, min(_MAX_SCORE, raw))
    return int(bounded.quantize(ONE, rounding=ROUND_HALF_UP))
