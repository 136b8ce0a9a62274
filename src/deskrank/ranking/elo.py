"""Elo math for pairwise item votes."""

from __future__ import annotations

import math

# Baseline for freshly uploaded items and the default sensitivity.
DEFAULT_RATING = 1200.0
DEFAULT_K_FACTOR = 32


def calculate_expected_score(rating_a: float, rating_b: float) -> float:
    """Probability that item A is preferred over item B."""
    return 1.0 / (1.0 + 10.0 ** ((rating_b - rating_a) / 400.0))


def calculate_elo_update(
    winner_rating: float,
    loser_rating: float,
    k_factor: float = DEFAULT_K_FACTOR,
) -> tuple[float, float]:
    """Compute new ratings after ``winner`` was preferred over ``loser``.

    The winner gains ``k_factor * (1 - E_w)`` and the loser gives up exactly the
    same amount, so every vote is zero-sum. Ratings are not clamped.

    Raises:
        ValueError: If a rating or the K-factor is not finite

    """
    for value in (winner_rating, loser_rating, k_factor):
        if not math.isfinite(value):
            msg = f"Elo inputs must be finite, got {value!r}"
            raise ValueError(msg)

    expected_winner = calculate_expected_score(winner_rating, loser_rating)
    delta = k_factor * (1.0 - expected_winner)
    return winner_rating + delta, loser_rating - delta
