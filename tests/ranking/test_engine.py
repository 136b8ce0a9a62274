"""Tests for RatingEngine vote recording."""

from __future__ import annotations

import itertools
import logging
from concurrent.futures import ThreadPoolExecutor

import pytest

from deskrank.exceptions import (
    DuplicateVoteError,
    InvalidVoteError,
    ItemNotFoundError,
    PersistenceFailureError,
)
from deskrank.ranking.engine import RatingEngine


@pytest.fixture
def store(context):
    """The store the engine writes through, so monkeypatches reach it."""
    return context.store


@pytest.fixture
def engine(context):
    return context.engine


@pytest.fixture
def pair(store):
    return store.create_item("Left", item_id="left"), store.create_item("Right", item_id="right")


def ratings(store, *item_ids):
    return tuple(store.get_item(item_id).rating for item_id in item_ids)


class TestRecordVote:
    def test_equal_ratings_update(self, engine, store, pair):
        outcome = engine.record_vote("bob", "left", "right")

        assert outcome.winner_rating == pytest.approx(1216.0)
        assert outcome.loser_rating == pytest.approx(1184.0)
        assert outcome.winner_delta == pytest.approx(16.0)
        assert outcome.loser_delta == pytest.approx(-16.0)
        assert ratings(store, "left", "right") == pytest.approx((1216.0, 1184.0))

    def test_vote_counts_increment(self, engine, store, pair):
        outcome = engine.record_vote("bob", "left", "right")

        assert outcome.winner_vote_count == 1
        assert outcome.loser_vote_count == 1
        assert store.get_item("left").vote_count == 1
        assert store.get_item("right").vote_count == 1

    def test_vote_record_keeps_before_and_after(self, engine, store, pair):
        outcome = engine.record_vote("bob", "left", "right")

        (vote,) = store.list_votes("bob")
        assert vote == outcome.vote
        assert vote.winner_id == "left"
        assert vote.loser_id == "right"
        assert vote.winner_rating_before == pytest.approx(1200.0)
        assert vote.winner_rating_after == pytest.approx(1216.0)
        assert vote.loser_rating_after == pytest.approx(1184.0)

    def test_uses_configured_k_factor(self, store, pair):
        engine = RatingEngine(store, k_factor=16, retry_wait_min=0, retry_wait_max=0)

        outcome = engine.record_vote("bob", "left", "right")

        assert outcome.winner_rating == pytest.approx(1208.0)

    def test_sequential_votes_are_zero_sum(self, engine, store, seeded_items):
        ids = [item.item_id for item in seeded_items]
        for winner, loser in itertools.combinations(ids, 2):
            engine.record_vote("bob", winner, loser)

        total = sum(store.get_item(item_id).rating for item_id in ids)
        assert total == pytest.approx(1200.0 * len(ids))

    def test_opted_out_item_still_accepts_votes(self, engine, store, pair):
        store.set_item_flags("right", voting_opt_out=True)

        outcome = engine.record_vote("bob", "left", "right")

        assert outcome.loser_rating == pytest.approx(1184.0)

    def test_logs_rating_change(self, engine, pair, caplog):
        caplog.set_level(logging.INFO, logger="deskrank.ranking.engine")

        engine.record_vote("bob", "left", "right")

        assert "Updated ratings: left (1200.0 → 1216.0), right (1200.0 → 1184.0)" in caplog.text


class TestRejectedVotes:
    """Rejected votes must leave ratings, counts and history untouched."""

    def assert_untouched(self, store):
        assert ratings(store, "left", "right") == (1200.0, 1200.0)
        assert store.get_item("left").vote_count == 0
        assert store.count_votes() == 0

    def test_self_vote(self, engine, store, pair):
        with pytest.raises(InvalidVoteError) as exc_info:
            engine.record_vote("bob", "left", "left")

        assert exc_info.value.kind == "InvalidVote"
        self.assert_untouched(store)

    def test_inactive_item(self, engine, store, pair):
        store.set_item_flags("right", active=False)

        with pytest.raises(InvalidVoteError, match="not active"):
            engine.record_vote("bob", "left", "right")

        self.assert_untouched(store)

    def test_missing_item(self, engine, store, pair):
        with pytest.raises(ItemNotFoundError) as exc_info:
            engine.record_vote("bob", "left", "ghost")

        assert exc_info.value.kind == "NotFound"
        assert exc_info.value.item_id == "ghost"
        self.assert_untouched(store)

    @pytest.mark.parametrize(("winner", "loser"), [("left", "right"), ("right", "left")])
    def test_duplicate_in_either_order(self, engine, store, pair, winner, loser):
        engine.record_vote("bob", "left", "right")
        before = ratings(store, "left", "right")

        with pytest.raises(DuplicateVoteError) as exc_info:
            engine.record_vote("bob", winner, loser)

        assert exc_info.value.pair == frozenset({"left", "right"})
        assert ratings(store, "left", "right") == before
        assert store.count_votes() == 1

    def test_other_voter_may_judge_same_pair(self, engine, store, pair):
        engine.record_vote("bob", "left", "right")
        engine.record_vote("carol", "right", "left")

        assert store.count_votes() == 2
        assert store.get_item("left").vote_count == 2


class TestAtomicity:
    def test_failure_after_first_write_rolls_back_everything(self, engine, store, pair, monkeypatch):
        original = store.update_item_rating
        calls = []

        def fail_on_second(item_id, new_rating, new_vote_count):
            calls.append(item_id)
            if len(calls) == 2:
                msg = "disk unplugged"
                raise RuntimeError(msg)
            original(item_id, new_rating, new_vote_count)

        monkeypatch.setattr(store, "update_item_rating", fail_on_second)

        with pytest.raises(RuntimeError, match="disk unplugged"):
            engine.record_vote("bob", "left", "right")

        assert ratings(store, "left", "right") == (1200.0, 1200.0)
        assert store.get_item("left").vote_count == 0
        assert store.count_votes() == 0
        assert store.list_vote_history("bob") == set()

    def test_persistence_failure_is_retried(self, engine, store, pair, monkeypatch):
        original = store.update_item_rating
        failures = []

        def flaky(item_id, new_rating, new_vote_count):
            if not failures:
                failures.append(item_id)
                msg = "write-write conflict"
                raise PersistenceFailureError(msg)
            original(item_id, new_rating, new_vote_count)

        monkeypatch.setattr(store, "update_item_rating", flaky)

        outcome = engine.record_vote("bob", "left", "right")

        assert len(failures) == 1
        assert outcome.winner_rating == pytest.approx(1216.0)
        assert ratings(store, "left", "right") == pytest.approx((1216.0, 1184.0))
        assert store.count_votes() == 1

    def test_exhausted_retries_propagate(self, engine, store, pair, monkeypatch, config):
        attempts = []

        def broken(*_args):
            attempts.append(1)
            msg = "store unavailable"
            raise PersistenceFailureError(msg)

        monkeypatch.setattr(store, "update_item_rating", broken)

        with pytest.raises(PersistenceFailureError) as exc_info:
            engine.record_vote("bob", "left", "right")

        assert exc_info.value.kind == "PersistenceFailure"
        assert len(attempts) == config.retry.attempts
        assert store.count_votes() == 0
        assert len(engine.locks) == 0

    def test_client_errors_are_not_retried(self, engine, store, pair, monkeypatch):
        calls = []
        original = store.has_voted

        def counting(*args):
            calls.append(args)
            return original(*args)

        monkeypatch.setattr(store, "has_voted", counting)
        engine.record_vote("bob", "left", "right")

        with pytest.raises(DuplicateVoteError):
            engine.record_vote("bob", "right", "left")

        assert len(calls) == 2


class TestConcurrency:
    def test_engine_shares_context_locks(self, context):
        assert context.engine.locks is context.locks

    def test_concurrent_votes_lose_no_updates(self, engine, store, seeded_items):
        ids = [item.item_id for item in seeded_items]
        voters = [f"voter-{index}" for index in range(6)]
        jobs = [(voter, a, b) for voter in voters for a, b in itertools.combinations(ids, 2)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(lambda job: engine.record_vote(*job), jobs))

        assert len(outcomes) == len(jobs)
        assert store.count_votes() == len(jobs)
        for item_id in ids:
            assert store.get_item(item_id).vote_count == len(voters) * (len(ids) - 1)
        total = sum(store.get_item(item_id).rating for item_id in ids)
        assert total == pytest.approx(1200.0 * len(ids))
        assert len(engine.locks) == 0

    def test_racing_duplicates_commit_once(self, engine, store, pair):
        def vote(order):
            try:
                return engine.record_vote("bob", *order)
            except DuplicateVoteError:
                return None

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(vote, [("left", "right"), ("right", "left")] * 4))

        assert sum(result is not None for result in results) == 1
        assert store.count_votes() == 1
        assert store.get_item("left").vote_count == 1
