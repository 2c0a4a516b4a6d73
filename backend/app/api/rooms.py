import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from rooms import RoomRegistry

router = APIRouter()
logger = logging.getLogger(__name__)


def get_registry(request: Request) -> RoomRegistry:
    return request.app.state.registry


@router.get("/api/rooms")
async def list_rooms(registry: RoomRegistry = Depends(get_registry)):
    return [summary.model_dump(by_alias=True) for summary in registry.summaries()]


@router.get("/api/rooms/{room_id}")
async def room_state(room_id: str, registry: RoomRegistry = Depends(get_registry)):
    game = registry.get(room_id)
    if game is None:
        logger.debug("Snapshot requested for unknown room %s", room_id)
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="room_not_found")
    return game.to_state().model_dump(by_alias=True)
