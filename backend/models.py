from __future__ import annotations
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator

Suit = Literal["hearts", "diamonds", "clubs", "spades"]
Lifecycle = Literal["waiting", "playing", "finished"]

SUIT_COLOR: Dict[str, Literal["red", "black"]] = {
    "hearts": "red",
    "diamonds": "red",
    "clubs": "black",
    "spades": "black",
}

RANK_LABELS: Dict[int, str] = {
    7: "7",
    8: "8",
    9: "9",
    10: "10",
    11: "J",
    12: "Q",
    13: "K",
    14: "A",
}


def card_id(suit: str, rank: int) -> str:
    return f"{suit}-{RANK_LABELS[rank]}"


class Card(BaseModel):
    id: str
    suit: Suit
    rank: int = Field(ge=7, le=14)  # 7..14 (11=J,12=Q,13=K,14=A)
    label: Optional[str] = None
    color: Optional[Literal["red", "black"]] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, value):
        if isinstance(value, dict):
            suit = value.get("suit")
            rank = value.get("rank")
            if suit in SUIT_COLOR and value.get("color") is None:
                value = {**value, "color": SUIT_COLOR[suit]}
            if isinstance(rank, int) and rank in RANK_LABELS:
                if value.get("label") is None:
                    value = {**value, "label": RANK_LABELS[rank]}
                if value.get("id") is None and suit in SUIT_COLOR:
                    value = {**value, "id": card_id(suit, rank)}
        return value


class Player(BaseModel):
    id: str
    name: str
    seat: int

    @property
    def team(self) -> int:
        return self.seat % 2


class PublicPlayer(BaseModel):
    id: str
    name: str
    seat: int
    team: int
    hand_size: int = Field(alias="handSize")

    model_config = ConfigDict(populate_by_name=True)


class TrickPlay(BaseModel):
    player_id: Optional[str] = Field(default=None, alias="playerId")
    seat: int
    card: Card

    model_config = ConfigDict(populate_by_name=True)


class RoundSummary(BaseModel):
    round: int
    dealer_index: int = Field(alias="dealerIndex")
    trump_chooser_index: int = Field(alias="trumpChooserIndex")
    trump_suit: Suit = Field(alias="trumpSuit")
    tricks_won: List[int] = Field(alias="tricksWon")
    winner_team: Optional[int] = Field(default=None, alias="winnerTeam")
    tokens_awarded: int = Field(0, alias="tokensAwarded")
    carry_bonus: bool = Field(False, alias="carryBonus")
    carry_over: bool = Field(False, alias="carryOver")

    model_config = ConfigDict(populate_by_name=True)


class GameState(BaseModel):
    room_id: str = Field(alias="roomId")
    players: List[PublicPlayer] = Field(default_factory=list)
    current_player_index: Optional[int] = Field(default=None, alias="currentPlayerIndex")
    game_state: Lifecycle = Field("waiting", alias="gameState")
    trick: List[TrickPlay] = Field(default_factory=list)
    trump_suit: Optional[Suit] = Field(default=None, alias="trumpSuit")
    lead_suit: Optional[Suit] = Field(default=None, alias="leadSuit")
    round: int = 0
    tokens: List[int] = Field(default_factory=lambda: [0, 0])
    tricks_won: List[int] = Field(default_factory=lambda: [0, 0], alias="tricksWon")
    dealer_index: int = Field(0, alias="dealerIndex")
    trump_chooser_index: Optional[int] = Field(default=None, alias="trumpChooserIndex")
    carry_over: bool = Field(False, alias="carryOver")
    target_tokens: int = Field(10, alias="targetTokens")
    last_trick: List[TrickPlay] = Field(default_factory=list, alias="lastTrick")
    last_trick_winner: Optional[int] = Field(default=None, alias="lastTrickWinner")
    last_round: Optional[RoundSummary] = Field(default=None, alias="lastRound")
    winner_team: Optional[int] = Field(default=None, alias="winnerTeam")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class HandView(BaseModel):
    cards: List[Card] = Field(default_factory=list)
    legal_card_ids: List[str] = Field(default_factory=list, alias="legalCardIds")

    model_config = ConfigDict(populate_by_name=True)


class RoomSummary(BaseModel):
    room_id: str = Field(alias="roomId")
    players: int
    game_state: Lifecycle = Field(alias="gameState")
    round: int
    tokens: List[int]

    model_config = ConfigDict(populate_by_name=True)


class JoinRoomRequest(BaseModel):
    room_id: str = Field(alias="roomId", min_length=1, max_length=64)
    player_name: str = Field(alias="playerName", min_length=1, max_length=32)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PlayCardRequest(BaseModel):
    room_id: str = Field(alias="roomId", min_length=1)
    card_id: str = Field(alias="cardId", min_length=1)

    model_config = ConfigDict(populate_by_name=True, extra="ignore")
