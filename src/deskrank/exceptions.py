"""Centralized exceptions for the deskrank application."""


class DeskrankError(Exception):
    """Base exception for all deskrank errors."""


class ConfigError(DeskrankError):
    """Raised when configuration cannot be loaded or is invalid."""


class RankingError(DeskrankError):
    """Base for outcomes of the pairing/voting flow that reach the caller.

    Every subclass carries a stable ``kind`` string that is surfaced unchanged
    at the interface boundary (HTTP payloads, CLI messages).
    """

    kind = "RankingError"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidVoteError(RankingError):
    """Raised for self-votes and votes on inactive items."""

    kind = "InvalidVote"


class DuplicateVoteError(RankingError):
    """Raised when the voter already judged this unordered pair."""

    kind = "DuplicateVote"

    def __init__(self, voter_id: str, item_a: str, item_b: str) -> None:
        self.voter_id = voter_id
        self.pair = frozenset((item_a, item_b))
        super().__init__(f"Voter '{voter_id}' already judged pair ({item_a}, {item_b})")


class ItemNotFoundError(RankingError):
    """Raised when an item does not exist (e.g. deleted mid-flow)."""

    kind = "NotFound"

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Item '{item_id}' not found")


class PersistenceFailureError(RankingError):
    """Raised when the underlying store is unavailable or a transaction fails.

    This is the only kind that is worth retrying, and only as a whole unit of work.
    """

    kind = "PersistenceFailure"
