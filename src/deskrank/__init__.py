"""deskrank: rank workstation photo sets through pairwise votes and Elo ratings."""

__version__ = "0.1.0"
