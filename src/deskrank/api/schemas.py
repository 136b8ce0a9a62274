"""Request and response payloads of the HTTP API.

Field names on the wire are camelCase; Python attributes stay snake_case.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator

from deskrank.database.records import Item  # noqa: TC001


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ItemPayload(_WireModel):
    item_id: str = Field(alias="id")
    title: str | None = None
    owner_id: str | None = Field(default=None, alias="ownerID")
    rating: float
    vote_count: int = Field(alias="voteCount")
    active: bool
    voting_opt_out: bool = Field(alias="votingOptOut")
    created_at: datetime = Field(alias="createdAt")

    @classmethod
    def from_item(cls, item: Item) -> ItemPayload:
        return cls(
            item_id=item.item_id,
            title=item.title,
            owner_id=item.owner_id,
            rating=item.rating,
            vote_count=item.vote_count,
            active=item.active,
            voting_opt_out=item.voting_opt_out,
            created_at=item.created_at,
        )


class VoteRequest(_WireModel):
    voter_id: str = Field(alias="voterID", min_length=1)
    winner_id: str = Field(alias="winnerID", min_length=1)
    loser_id: str = Field(alias="loserID", min_length=1)


class VoteResponse(_WireModel):
    winner_rating: float = Field(alias="winnerRating")
    loser_rating: float = Field(alias="loserRating")
    vote_id: str = Field(alias="voteID")


class CreateItemRequest(_WireModel):
    title: str | None = Field(default=None, max_length=200)
    owner_id: str | None = Field(default=None, alias="ownerID")
    voting_opt_out: bool | None = Field(default=None, alias="votingOptOut")

    @field_validator("title")
    @classmethod
    def blank_title_is_none(cls, v: str | None) -> str | None:
        """Treat an empty title like a missing one."""
        if v is not None and not v.strip():
            return None
        return v


class UpdateItemRequest(_WireModel):
    active: bool | None = None
    voting_opt_out: bool | None = Field(default=None, alias="votingOptOut")


class ErrorPayload(_WireModel):
    kind: str
    message: str
