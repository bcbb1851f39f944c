"""Per-token price snapshots used to measure short-horizon moves.

Each token keeps only its most recent observation (last write wins).
Entries are never deleted, so a token that drops out of the catalog for a
few cycles still measures its move against the last price it was seen at.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Snapshot:
    """Last observed prices for one token.

    Args:
        mid: Mid price at observation time.
        bid: Best bid at observation time.
        ask: Best ask at observation time.
        observed_at: Epoch milliseconds of the observation.

    """

    mid: Decimal
    bid: Decimal
    ask: Decimal
    observed_at: int


class SnapshotStore:
    """In-memory map of token id to its latest ``Snapshot``.

    Track which tokens changed since the last persistence so the state
    repository only writes what was observed this cycle.

    Args:
        snapshots: Initial ``(token_id, snapshot)`` pairs, e.g. loaded from
            the database.
        observed_at: Time of the most recent observation, in epoch ms.

    """

    def __init__(
        self,
        snapshots: Iterable[tuple[str, Snapshot]] = (),
        observed_at: int = 0,
    ) -> None:
        """Initialize the store from previously persisted snapshots."""
        self._by_token: dict[str, Snapshot] = dict(snapshots)
        self._dirty: set[str] = set()
        self.observed_at = observed_at

    def get(self, token_id: str) -> Snapshot | None:
        """Return the last snapshot for a token, or None if never observed."""
        return self._by_token.get(token_id)

    def record(
        self,
        token_id: str,
        *,
        mid: Decimal,
        bid: Decimal,
        ask: Decimal,
        observed_at: int,
    ) -> Snapshot:
        """Overwrite the token's snapshot with a new observation.

        Args:
            token_id: CLOB token identifier.
            mid: Observed mid price.
            bid: Observed best bid.
            ask: Observed best ask.
            observed_at: Observation time in epoch milliseconds.

        Returns:
            The stored snapshot.

        """
        snapshot = Snapshot(mid=mid, bid=bid, ask=ask, observed_at=observed_at)
        self._by_token[token_id] = snapshot
        self._dirty.add(token_id)
        self.observed_at = max(self.observed_at, observed_at)
        return snapshot

    def pending(self) -> list[tuple[str, Snapshot]]:
        """Return snapshots recorded since the last ``mark_clean`` call."""
        return [(token_id, self._by_token[token_id]) for token_id in sorted(self._dirty)]

    def mark_clean(self) -> None:
        """Forget the pending set after the snapshots have been persisted."""
        self._dirty.clear()

    def __contains__(self, token_id: object) -> bool:
        """Return True if the token has been observed."""
        return token_id in self._by_token

    def __len__(self) -> int:
        """Return the number of observed tokens."""
        return len(self._by_token)
