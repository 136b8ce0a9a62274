"""FastAPI application exposing pairing, voting and the leaderboard.

Handlers are plain ``def`` functions, so FastAPI runs them on its worker
thread pool; the storage manager gives each worker thread its own cursor.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from deskrank import __version__
from deskrank.api.schemas import (
    CreateItemRequest,
    ErrorPayload,
    ItemPayload,
    UpdateItemRequest,
    VoteRequest,
    VoteResponse,
)
from deskrank.context import RankingContext
from deskrank.exceptions import (
    DuplicateVoteError,
    InvalidVoteError,
    ItemNotFoundError,
    PersistenceFailureError,
    RankingError,
)
from deskrank.ranking.models import PairExhausted

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    InvalidVoteError.kind: status.HTTP_400_BAD_REQUEST,
    ItemNotFoundError.kind: status.HTTP_404_NOT_FOUND,
    DuplicateVoteError.kind: status.HTTP_409_CONFLICT,
    PersistenceFailureError.kind: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_context(request: Request) -> RankingContext:
    return request.app.state.context


Context = Annotated[RankingContext, Depends(get_context)]


async def _ranking_error_handler(_request: Request, exc: RankingError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("%s: %s", exc.kind, exc.message)
    else:
        logger.info("%s: %s", exc.kind, exc.message)
    payload = ErrorPayload(kind=exc.kind, message=exc.message)
    return JSONResponse(status_code=status_code, content=payload.model_dump())


async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in exc.errors())
    payload = ErrorPayload(kind="InvalidRequest", message=f"Invalid request fields: {fields}")
    return JSONResponse(status_code=422, content=payload.model_dump())


def create_app(context: RankingContext, *, close_on_shutdown: bool = False) -> FastAPI:
    """Build the API around an opened ranking context.

    Args:
        context: Storage and ranking components shared by all requests
        close_on_shutdown: Close the context's database when the app stops

    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        if close_on_shutdown:
            context.close()

    app = FastAPI(title="deskrank", version=__version__, lifespan=lifespan)
    app.state.context = context
    app.add_exception_handler(RankingError, _ranking_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    @app.get("/pair")
    def get_pair(ctx: Context, voter: Annotated[str, Query(min_length=1)]) -> dict[str, Any]:
        """Serve one unseen pair, or report that the voter has judged everything."""
        result = ctx.selector.select_pair(voter)
        if isinstance(result, PairExhausted):
            return {"exhausted": True}
        return {
            "itemA": ItemPayload.from_item(result.item_a).model_dump(by_alias=True, mode="json"),
            "itemB": ItemPayload.from_item(result.item_b).model_dump(by_alias=True, mode="json"),
        }

    @app.post("/vote", response_model=VoteResponse)
    def post_vote(ctx: Context, body: VoteRequest) -> VoteResponse:
        outcome = ctx.engine.record_vote(body.voter_id, body.winner_id, body.loser_id)
        return VoteResponse(
            winner_rating=outcome.winner_rating,
            loser_rating=outcome.loser_rating,
            vote_id=outcome.vote.vote_id,
        )

    @app.get("/leaderboard")
    def get_leaderboard(
        ctx: Context,
        limit: Annotated[int | None, Query(ge=1, le=500)] = None,
    ) -> dict[str, Any]:
        items = ctx.leaderboard(limit)
        return {"items": [ItemPayload.from_item(item).model_dump(by_alias=True, mode="json") for item in items]}

    @app.post("/items", status_code=status.HTTP_201_CREATED)
    def create_item(ctx: Context, body: CreateItemRequest) -> dict[str, Any]:
        item = ctx.store.create_item(body.title, body.owner_id, voting_opt_out=body.voting_opt_out)
        return ItemPayload.from_item(item).model_dump(by_alias=True, mode="json")

    @app.patch("/items/{item_id}")
    def update_item(ctx: Context, item_id: str, body: UpdateItemRequest) -> dict[str, Any]:
        with ctx.locks.hold(item_id):
            item = ctx.store.set_item_flags(item_id, active=body.active, voting_opt_out=body.voting_opt_out)
        return ItemPayload.from_item(item).model_dump(by_alias=True, mode="json")

    @app.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_item(ctx: Context, item_id: str) -> Response:
        ctx.delete_item(item_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/health")
    def health(ctx: Context) -> dict[str, Any]:
        return {"status": "ok", "items": ctx.store.count_items(), "votes": ctx.store.count_votes()}

    return app
