"""HTTP API for pairing, voting and the leaderboard."""

from deskrank.api.app import STATUS_BY_KIND, create_app

__all__ = ["STATUS_BY_KIND", "create_app"]
