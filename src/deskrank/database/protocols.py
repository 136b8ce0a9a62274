"""Protocol definitions for the storage collaborator.

The pairing and rating components depend on these protocols rather than on
``ItemStore`` directly, so they can run against any backend (or an in-memory
fake in tests) that offers the same operations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

    from deskrank.database.records import Item, Vote


class PairingSource(Protocol):
    """Read-only view used by the pair selector."""

    def list_active_items(self) -> list[Item]:
        """Items that are active and not opted out of voting."""
        ...

    def list_vote_history(self, voter_id: str) -> set[frozenset[str]]:
        """Unordered item-id pairs the voter has already judged."""
        ...


class RatingStore(Protocol):
    """Transactional operations used by the rating engine."""

    def transaction(self) -> AbstractContextManager[None]:
        """Group the calls made inside the block into one atomic unit of work."""
        ...

    def get_item(self, item_id: str) -> Item:
        """Return the item or raise ``ItemNotFoundError``."""
        ...

    def has_voted(self, voter_id: str, item_a: str, item_b: str) -> bool:
        """Whether the voter already judged the pair in either order."""
        ...

    def insert_vote(  # noqa: PLR0913
        self,
        voter_id: str,
        winner_id: str,
        loser_id: str,
        *,
        winner_rating_before: float,
        loser_rating_before: float,
        winner_rating_after: float,
        loser_rating_after: float,
    ) -> Vote:
        """Append an immutable vote record."""
        ...

    def update_item_rating(self, item_id: str, new_rating: float, new_vote_count: int) -> None:
        """Persist a rating computed by the engine."""
        ...
