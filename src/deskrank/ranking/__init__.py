"""Pairwise ranking: pair selection, Elo math and the rating engine."""

from deskrank.ranking.elo import DEFAULT_K_FACTOR, DEFAULT_RATING, calculate_elo_update, calculate_expected_score
from deskrank.ranking.engine import RatingEngine
from deskrank.ranking.locks import ItemLockRegistry
from deskrank.ranking.models import Pair, PairExhausted, PairResult, VoteOutcome
from deskrank.ranking.pairing import PairSelector

__all__ = [
    "DEFAULT_K_FACTOR",
    "DEFAULT_RATING",
    "ItemLockRegistry",
    "Pair",
    "PairExhausted",
    "PairResult",
    "PairSelector",
    "RatingEngine",
    "VoteOutcome",
    "calculate_elo_update",
    "calculate_expected_score",
]
