"""Pair selection for voters.

Picks one pair the voter has not judged yet, uniformly at random among the
remaining candidates, or reports exhaustion.

Small populations are handled by enumerating every candidate pair. For larger
ones enumerating is O(n²), so the selector samples an anchor item and then a
partner the voter has not yet paired with it, retrying a bounded number of
times before falling back to enumeration. The fallback is what makes an
"exhausted" answer truthful: sampling alone degrades near exhaustion.
"""

from __future__ import annotations

import itertools
import logging
import random
from collections import defaultdict
from typing import TYPE_CHECKING

from deskrank.ranking.models import Pair, PairExhausted

if TYPE_CHECKING:
    from deskrank.database.protocols import PairingSource
    from deskrank.database.records import Item
    from deskrank.ranking.models import PairResult

logger = logging.getLogger(__name__)

DEFAULT_EXHAUSTIVE_THRESHOLD = 64
DEFAULT_SAMPLE_RETRY_CAP = 16


class PairSelector:
    """Serves unseen pairs to voters. Read-only with respect to the store."""

    def __init__(
        self,
        source: PairingSource,
        *,
        exclude_own_items: bool = False,
        exhaustive_threshold: int = DEFAULT_EXHAUSTIVE_THRESHOLD,
        sample_retry_cap: int = DEFAULT_SAMPLE_RETRY_CAP,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize the selector.

        Args:
            source: Provides active items and per-voter history
            exclude_own_items: Never pair a voter with items they own
            exhaustive_threshold: Populations up to this size are enumerated directly
            sample_retry_cap: Anchor draws attempted before falling back to enumeration
            rng: Random source (seed it for reproducible tests)

        """
        self.source = source
        self.exclude_own_items = exclude_own_items
        self.exhaustive_threshold = exhaustive_threshold
        self.sample_retry_cap = sample_retry_cap
        self.rng = rng or random.Random()

    def eligible_items(self, voter_id: str) -> list[Item]:
        """Items that may appear in a pair for this voter."""
        items = [item for item in self.source.list_active_items() if item.is_pairable]
        if self.exclude_own_items:
            items = [item for item in items if item.owner_id != voter_id]
        return items

    def select_pair(self, voter_id: str) -> PairResult:
        """Return an unseen pair for ``voter_id`` or ``PairExhausted``."""
        items = self.eligible_items(voter_id)
        if len(items) < 2:  # noqa: PLR2004
            logger.debug("Voter %s: fewer than two pairable items", voter_id)
            return PairExhausted(voter_id=voter_id, pairable_items=len(items))

        history = self.source.list_vote_history(voter_id)

        chosen: tuple[Item, Item] | None = None
        if len(items) > self.exhaustive_threshold:
            chosen = self._sample_pair(items, history)
            if chosen is None:
                logger.debug("Voter %s: sampling found no pair, enumerating", voter_id)
        if chosen is None:
            chosen = self._enumerate_pair(items, history)

        if chosen is None:
            logger.info("Voter %s has judged every pair of %d items", voter_id, len(items))
            return PairExhausted(voter_id=voter_id, pairable_items=len(items))

        item_a, item_b = chosen
        if self.rng.random() < 0.5:  # noqa: PLR2004
            item_a, item_b = item_b, item_a
        return Pair(voter_id=voter_id, item_a=item_a, item_b=item_b)

    def _sample_pair(self, items: list[Item], history: set[frozenset[str]]) -> tuple[Item, Item] | None:
        partners: dict[str, set[str]] = defaultdict(set)
        for pair in history:
            if len(pair) == 2:  # noqa: PLR2004
                first, second = tuple(pair)
                partners[first].add(second)
                partners[second].add(first)

        for _ in range(self.sample_retry_cap):
            anchor = self.rng.choice(items)
            seen = partners[anchor.item_id]
            candidates = [item for item in items if item.item_id != anchor.item_id and item.item_id not in seen]
            if candidates:
                return anchor, self.rng.choice(candidates)
        return None

    def _enumerate_pair(self, items: list[Item], history: set[frozenset[str]]) -> tuple[Item, Item] | None:
        candidates = [
            (first, second)
            for first, second in itertools.combinations(items, 2)
            if first.item_id != second.item_id and frozenset((first.item_id, second.item_id)) not in history
        ]
        if not candidates:
            return None
        return self.rng.choice(candidates)

    def remaining_pairs(self, voter_id: str) -> int:
        """Number of pairs the voter can still be offered."""
        items = self.eligible_items(voter_id)
        history = self.source.list_vote_history(voter_id)
        return sum(
            1
            for first, second in itertools.combinations(items, 2)
            if frozenset((first.item_id, second.item_id)) not in history
        )
