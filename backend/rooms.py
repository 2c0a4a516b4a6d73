from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from game import GameError, IllegalAction, OmiGame, RoomFull
from models import RoomSummary

logger = logging.getLogger(__name__)


class MessageChannel(Protocol):
    async def send(self, player_id: str, event: str, payload: Any = None) -> None: ...

    async def broadcast(self, room_id: str, event: str, payload: Any = None) -> None: ...

    def enter_room(self, room_id: str, player_id: str) -> None: ...


@dataclass
class RoomEntry:
    game: OmiGame
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class RoomRegistry:
    """Owns every room's engine and serializes actions per room.

    Each room has its own ``asyncio.Lock``; rooms never wait on each other.
    """

    def __init__(
        self,
        channel: MessageChannel,
        *,
        game_factory: Optional[Callable[[str], OmiGame]] = None,
        report_illegal_actions: bool = True,
    ):
        self.channel = channel
        self.game_factory = game_factory or OmiGame
        self.report_illegal_actions = report_illegal_actions
        self._rooms: Dict[str, RoomEntry] = {}
        self._create_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def get(self, room_id: str) -> Optional[OmiGame]:
        entry = self._rooms.get(room_id)
        return entry.game if entry else None

    def get_or_create(self, room_id: str) -> RoomEntry:
        with self._create_lock:
            entry = self._rooms.get(room_id)
            if entry is None:
                entry = RoomEntry(game=self.game_factory(room_id))
                self._rooms[room_id] = entry
                logger.info("Created room %s", room_id)
            return entry

    def summaries(self) -> List[RoomSummary]:
        return [
            RoomSummary(
                room_id=room_id,
                players=len(entry.game.seated),
                game_state=entry.game.state,
                round=entry.game.round_number,
                tokens=list(entry.game.tokens),
            )
            for room_id, entry in list(self._rooms.items())
        ]

    # ------------------------------------------------------------------
    # Broadcast helpers
    # ------------------------------------------------------------------
    async def _broadcast_state(self, game: OmiGame):
        await self.channel.broadcast(game.id, "game-update", game.to_state().model_dump(by_alias=True))

    async def _send_hand(self, game: OmiGame, player_id: str):
        await self.channel.send(player_id, "your-cards", game.hand_for(player_id).model_dump(by_alias=True))

    async def _send_all_hands(self, game: OmiGame):
        for player in game.seated:
            await self._send_hand(game, player.id)

    async def _reject(self, player_id: str, exc: GameError):
        logger.debug("Rejected action from %s: %s", player_id, exc.code)
        if self.report_illegal_actions:
            await self.channel.send(player_id, "error", {"code": exc.code, "message": str(exc)})

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    async def join_room(self, room_id: str, player_id: str, player_name: str) -> Optional[int]:
        entry = self.get_or_create(room_id)
        async with entry.lock:
            game = entry.game
            try:
                seat = game.add_player(player_id, player_name)
            except RoomFull:
                logger.info("Room %s is full, rejected %s", room_id, player_id)
                await self.channel.send(player_id, "room-full", {"roomId": room_id})
                return None

            self.channel.enter_room(room_id, player_id)
            logger.info("Player %s (%s) joined room %s at seat %s", player_id, player_name, room_id, seat)
            await self.channel.send(player_id, "joined-room", {"roomId": room_id, "playerId": player_id, "seat": seat})
            await self._broadcast_state(game)

            if game.state == "waiting" and game.is_full:
                game.start()
                logger.info("Room %s started", room_id)
                await self.channel.broadcast(room_id, "game-started", None)
                await self._broadcast_state(game)
                await self._send_all_hands(game)
            return seat

    async def play_card(self, room_id: str, player_id: str, card_id: str) -> bool:
        entry = self._rooms.get(room_id)
        if entry is None:
            logger.debug("play-card for unknown room %s ignored", room_id)
            return False
        async with entry.lock:
            game = entry.game
            round_before = game.round_number
            rounds_scored = len(game.round_history)
            try:
                seat = game.seat_of(player_id)
                if seat is None:
                    raise IllegalAction("not_seated")
                game.play_card(seat, card_id)
            except GameError as exc:
                await self._reject(player_id, exc)
                return False

            new_round = game.state == "playing" and game.round_number != round_before
            if new_round:
                await self._send_all_hands(game)
            else:
                await self._send_hand(game, player_id)
            if len(game.round_history) > rounds_scored:
                await self.channel.broadcast(
                    room_id, "round-ended", game.round_history[-1].model_dump(by_alias=True)
                )
            if game.state == "finished":
                await self.channel.broadcast(
                    room_id, "game-finished", {"winnerTeam": game.winner_team, "tokens": list(game.tokens)}
                )
            await self._broadcast_state(game)
            return True

    async def disconnect(self, player_id: str) -> List[str]:
        affected: List[str] = []
        for room_id, entry in list(self._rooms.items()):
            async with entry.lock:
                if entry.game.remove_player(player_id) is None:
                    continue
                logger.info("Player %s left room %s", player_id, room_id)
                affected.append(room_id)
                await self._broadcast_state(entry.game)
        return affected
