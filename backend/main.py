from __future__ import annotations

import json
import logging
import random
import uuid
from typing import Any, Dict, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from app.api.rooms import router as rooms_router
from app.settings import Settings, get_settings
from game import TRUMP_PICKERS, OmiGame
from models import JoinRoomRequest, PlayCardRequest
from rooms import RoomRegistry

logger = logging.getLogger(__name__)


# ---------- WebSockets hub ----------
class Hub:
    """Tracks one socket per player and which rooms each player belongs to."""

    def __init__(self):
        self.sockets: Dict[str, WebSocket] = {}
        self.rooms: Dict[str, Set[str]] = {}

    async def connect(self, ws: WebSocket) -> str:
        await ws.accept()
        player_id = uuid.uuid4().hex[:12]
        self.sockets[player_id] = ws
        return player_id

    def disconnect(self, player_id: str):
        self.sockets.pop(player_id, None)
        for members in self.rooms.values():
            members.discard(player_id)

    def enter_room(self, room_id: str, player_id: str) -> None:
        self.rooms.setdefault(room_id, set()).add(player_id)

    async def send(self, player_id: str, event: str, payload: Any = None) -> None:
        ws = self.sockets.get(player_id)
        if ws is None:
            return
        try:
            await ws.send_json({"type": event, "payload": payload})
        except RuntimeError as exc:
            logger.warning("Send to %s failed (%s): %s", player_id, event, exc)

    async def broadcast(self, room_id: str, event: str, payload: Any = None) -> None:
        for player_id in list(self.rooms.get(room_id, ())):
            await self.send(player_id, event, payload)


def _game_factory(settings: Settings):
    picker = TRUMP_PICKERS[settings.trump_selection]

    def factory(room_id: str) -> OmiGame:
        rng = random.Random(settings.shuffle_seed) if settings.shuffle_seed is not None else random.Random()
        return OmiGame(room_id, rng=rng, target_tokens=settings.target_tokens, trump_picker=picker)

    return factory


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI()
    allowed_origins = settings.allowed_origins()
    application.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )
    logger.info("[CORS] allow_origins: %s", allowed_origins)

    hub = Hub()
    registry = RoomRegistry(
        hub,
        game_factory=_game_factory(settings),
        report_illegal_actions=settings.report_illegal_actions,
    )
    application.state.hub = hub
    application.state.registry = registry
    application.include_router(rooms_router)

    # ---------- WS endpoint ----------
    @application.websocket("/ws")
    async def ws_table(ws: WebSocket):
        player_id = await hub.connect(ws)
        logger.info("Player %s connected", player_id)
        try:
            await hub.send(player_id, "connected", {"playerId": player_id})
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                raw = message.get("text")
                if raw is None:
                    await hub.send(player_id, "error", {"code": "bad_request", "message": "Expected a text frame"})
                    continue
                try:
                    data = json.loads(raw)
                except ValueError:
                    await hub.send(player_id, "error", {"code": "bad_request", "message": "Malformed JSON"})
                    continue
                t = data.get("type") if isinstance(data, dict) else None
                try:
                    if t == "join-room":
                        req = JoinRoomRequest.model_validate(data)
                        await registry.join_room(req.room_id, player_id, req.player_name)
                    elif t == "play-card":
                        req = PlayCardRequest.model_validate(data)
                        await registry.play_card(req.room_id, player_id, req.card_id)
                    else:
                        await hub.send(player_id, "error", {"code": "bad_request", "message": f"Unknown message type: {t}"})
                except ValidationError as exc:
                    await hub.send(player_id, "error", {"code": "bad_request", "message": str(exc)})
        except WebSocketDisconnect:
            logger.info("Player %s disconnected", player_id)
        finally:
            hub.disconnect(player_id)
            await registry.disconnect(player_id)

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=3001)
