"""Watch history endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Query

from app.api.deps import CurrentPrincipal, Playback
from app.api.schemas import SuccessResponse, WatchProgressRequest

router = APIRouter(tags=["Watch History"])


@router.post(
    "/watch-history",
    response_model=SuccessResponse,
    summary="Record playback progress on a lecture",
    responses={404: {"description": "Lecture not found"}},
)
async def add_watch_history(
    payload: WatchProgressRequest,
    playback: Playback,
    principal: CurrentPrincipal,
) -> SuccessResponse:
    await playback.record(principal.id, payload.lecture_id, payload.progress, payload.current_time)
    return SuccessResponse(message="Watch history updated successfully")


@router.get("/watch-history", summary="Everything the current user has watched")
async def get_watch_history(playback: Playback, principal: CurrentPrincipal) -> list[dict[str, Any]]:
    return await playback.history(principal.id)


@router.get("/watch-history/recent", summary="Most recently watched lectures")
async def get_recent_activity(
    playback: Playback,
    principal: CurrentPrincipal,
    limit: Annotated[int, Query(ge=1, le=50)] = 5,
) -> list[dict[str, Any]]:
    return await playback.recent(principal.id, limit)


@router.get("/getVideoProgress/{lecture_id}", summary="Stored progress for one lecture")
async def get_video_progress(
    lecture_id: int,
    playback: Playback,
    principal: CurrentPrincipal,
) -> dict[str, float]:
    return await playback.progress(principal.id, lecture_id)
