# src/letitout/api/v1/endpoints/feed.py
"""Feed and room endpoints."""

from fastapi import APIRouter, status

from letitout.api.deps import EngineDep
from letitout.schemas import FeedResponse, FeedVentResponse, RoomCreate, RoomResponse
from letitout.services.feed import FeedResult

router = APIRouter(tags=["feed"])


def _feed_response(result: FeedResult) -> FeedResponse:
    return FeedResponse(
        source=result.source.value,
        vents=[FeedVentResponse.model_validate(vent) for vent in result.vents],
    )


@router.get("/feed", response_model=FeedResponse)
async def get_feed(engine: EngineDep) -> FeedResponse:
    """Return the merged, moderation-filtered feed, newest first."""
    return _feed_response(await engine.load_feed())


@router.get("/rooms", response_model=list[RoomResponse])
async def list_rooms(engine: EngineDep) -> list[RoomResponse]:
    """List service rooms followed by rooms created on this device."""
    snapshot = await engine.list_rooms()
    return [RoomResponse.model_validate(entry) for entry in snapshot.rooms]


@router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(payload: RoomCreate, engine: EngineDep) -> RoomResponse:
    room = await engine.create_room(payload.name, payload.description)
    return RoomResponse(id=room.id, name=room.name, description=room.description, local=True)


@router.get("/rooms/{room_id}/feed", response_model=FeedResponse)
async def get_room_feed(room_id: str, engine: EngineDep) -> FeedResponse:
    """Return the feed for one room, given by id or by name."""
    return _feed_response(await engine.load_feed(room=room_id))
