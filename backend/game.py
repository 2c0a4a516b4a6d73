from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union

from models import (
    RANK_LABELS,
    Card,
    GameState,
    HandView,
    Lifecycle,
    Player,
    PublicPlayer,
    RoundSummary,
    TrickPlay,
)

logger = logging.getLogger(__name__)

SUITS = ["hearts", "diamonds", "clubs", "spades"]
RANKS = [7, 8, 9, 10, 11, 12, 13, 14]
SUIT_ORDER: Dict[str, int] = {suit: idx for idx, suit in enumerate(SUITS)}
LABEL_RANKS: Dict[str, int] = {label: rank for rank, label in RANK_LABELS.items()}

MAX_PLAYERS = 4
HAND_SIZE = 8
TRICKS_PER_ROUND = 8
TARGET_TOKENS = 10


class GameError(ValueError):
    code = "game_error"

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None):
        if code:
            self.code = code
        super().__init__(message or self.code)


class RoomFull(GameError):
    code = "room_full"


class IllegalAction(GameError):
    code = "illegal_action"


TrumpPicker = Callable[[random.Random, Sequence[Card]], str]


def make_deck() -> List[Card]:
    return [Card(suit=suit, rank=rank) for suit in SUITS for rank in RANKS]


def card_from_id(card_id: str) -> Optional[Card]:
    suit, _, label = (card_id or "").partition("-")
    rank = LABEL_RANKS.get(label)
    if suit not in SUIT_ORDER or rank is None:
        return None
    return Card(suit=suit, rank=rank)


def sort_hand(cards: Sequence[Card]) -> List[Card]:
    return sorted(cards, key=lambda c: (SUIT_ORDER[c.suit], c.rank))


def deal(rng: random.Random) -> List[List[Card]]:
    """Shuffle a fresh 32-card deck and split it into four sorted hands of eight."""
    deck = make_deck()
    rng.shuffle(deck)
    return [sort_hand(deck[i * HAND_SIZE:(i + 1) * HAND_SIZE]) for i in range(MAX_PLAYERS)]


def legal_plays(hand: Sequence[Card], lead_suit: Optional[str]) -> List[Card]:
    """Cards from ``hand`` that may be played on a trick led with ``lead_suit``.

    Following suit is mandatory when possible; a player void in the lead suit
    may play anything, trump included but not required.
    """
    if lead_suit is None:
        return list(hand)
    following = [card for card in hand if card.suit == lead_suit]
    return following or list(hand)


def trick_winner(cards: Sequence[Card], trump: Optional[str]) -> int:
    """Index of the winning card; ``cards`` are in play order."""
    if not cards:
        raise ValueError("Empty trick")
    lead = cards[0].suit

    def strength(idx: int) -> tuple[int, int]:
        card = cards[idx]
        if card.suit == trump:
            return (2, card.rank)
        if card.suit == lead:
            return (1, card.rank)
        return (0, card.rank)

    return max(range(len(cards)), key=strength)


@dataclass(frozen=True)
class RoundOutcome:
    winner_team: Optional[int]
    tokens: int
    carry_bonus: bool
    carry_over: bool


def score_round(tricks_won: Sequence[int], chooser_team: int, carry_over: bool) -> RoundOutcome:
    """Token award for a finished round.

    A 4-4 split pays nothing and defers one bonus token to the next decided
    round. A clean sweep pays 3. Otherwise the chooser's team earns 1 and the
    opposing team earns 2 for beating the chooser's trump.
    """
    t0, t1 = tricks_won
    if t0 == t1:
        return RoundOutcome(winner_team=None, tokens=0, carry_bonus=False, carry_over=True)
    winner = 0 if t0 > t1 else 1
    if tricks_won[winner] == TRICKS_PER_ROUND:
        tokens = 3
    elif winner == chooser_team:
        tokens = 1
    else:
        tokens = 2
    if carry_over:
        tokens += 1
    return RoundOutcome(winner_team=winner, tokens=tokens, carry_bonus=carry_over, carry_over=False)


def random_trump(rng: random.Random, hand: Sequence[Card]) -> str:
    return rng.choice(SUITS)


def strongest_suit_trump(rng: random.Random, hand: Sequence[Card]) -> str:
    """Chooser's longest suit; ties go to the higher total rank, then suit order."""
    if not hand:
        return rng.choice(SUITS)

    def weight(suit: str) -> tuple[int, int, int]:
        ranks = [card.rank for card in hand if card.suit == suit]
        return (len(ranks), sum(ranks), -SUIT_ORDER[suit])

    return max(SUITS, key=weight)


TRUMP_PICKERS: Dict[str, TrumpPicker] = {
    "random": random_trump,
    "strongest": strongest_suit_trump,
}


def team_of(seat: int) -> int:
    return seat % 2


@dataclass
class _Play:
    seat: int
    card: Card


class OmiGame:
    def __init__(
        self,
        room_id: str,
        *,
        rng: Optional[random.Random] = None,
        target_tokens: int = TARGET_TOKENS,
        trump_picker: Optional[TrumpPicker] = None,
    ):
        self.id = room_id
        self.rng = rng or random.Random()
        self.target_tokens = target_tokens
        self.pick_trump = trump_picker or random_trump

        self.players: List[Optional[Player]] = []
        self.hands: List[List[Card]] = []
        self.state: Lifecycle = "waiting"

        self.trick: List[_Play] = []
        self.last_trick: List[_Play] = []
        self.last_trick_winner: Optional[int] = None
        self.played: List[Card] = []
        self.trump: Optional[str] = None
        self.dealer_seat: int = 0
        self.chooser_seat: Optional[int] = None
        self.current_seat: Optional[int] = None

        self.round_number: int = 0
        self.tricks_won: List[int] = [0, 0]
        self.tokens: List[int] = [0, 0]
        self.carry_over: bool = False
        self.round_history: List[RoundSummary] = []
        self.winner_team: Optional[int] = None

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------
    @property
    def seated(self) -> List[Player]:
        return [p for p in self.players if p is not None]

    @property
    def is_full(self) -> bool:
        return len(self.seated) >= MAX_PLAYERS

    def seat_of(self, player_id: str) -> Optional[int]:
        for player in self.seated:
            if player.id == player_id:
                return player.seat
        return None

    def add_player(self, player_id: str, name: str) -> int:
        existing = self.seat_of(player_id)
        if existing is not None:
            return existing
        if self.state != "waiting" or self.is_full:
            raise RoomFull()
        seat = len(self.players)
        self.players.append(Player(id=player_id, name=name, seat=seat))
        return seat

    def remove_player(self, player_id: str) -> Optional[int]:
        """Drop a player from the roster and return the seat they held.

        Before the deal seats are simply renumbered. Once the game has started
        the seat is left vacant: its hand stays on the table and turn order is
        not adjusted, so play stalls when the rotation reaches it.
        """
        seat = self.seat_of(player_id)
        if seat is None:
            return None
        if self.state == "waiting":
            remaining = [p for p in self.seated if p.id != player_id]
            self.players = [
                Player(id=p.id, name=p.name, seat=idx) for idx, p in enumerate(remaining)
            ]
        else:
            self.players[seat] = None
        return seat

    # ------------------------------------------------------------------
    # Match lifecycle
    # ------------------------------------------------------------------
    def start(self):
        if self.state != "waiting":
            raise IllegalAction("already_started")
        if len(self.seated) != MAX_PLAYERS:
            raise IllegalAction("not_enough_players")
        self.state = "playing"
        self.dealer_seat = 0
        self.round_number = 0
        self.tokens = [0, 0]
        self.carry_over = False
        self.round_history = []
        self.winner_team = None
        self._start_round()

    def _start_round(self):
        self.round_number += 1
        self.hands = deal(self.rng)
        self.trick = []
        self.last_trick = []
        self.last_trick_winner = None
        self.played = []
        self.tricks_won = [0, 0]
        self.chooser_seat = (self.dealer_seat + 1) % MAX_PLAYERS
        self.trump = self.pick_trump(self.rng, self.hands[self.chooser_seat])
        self.current_seat = self.chooser_seat
        logger.info(
            "Room %s round %s: dealer=%s chooser=%s trump=%s",
            self.id,
            self.round_number,
            self.dealer_seat,
            self.chooser_seat,
            self.trump,
        )

    # ------------------------------------------------------------------
    # Play
    # ------------------------------------------------------------------
    @property
    def lead_suit(self) -> Optional[str]:
        return self.trick[0].card.suit if self.trick else None

    def legal_plays(self, seat: int) -> List[Card]:
        if self.state != "playing" or not 0 <= seat < len(self.hands):
            return []
        return legal_plays(self.hands[seat], self.lead_suit)

    def play_card(self, seat: int, card: Union[str, Card]):
        if self.state != "playing":
            raise IllegalAction("game_not_active")
        if seat != self.current_seat:
            raise IllegalAction("not_your_turn")
        if self.players[seat] is None:
            raise IllegalAction("seat_vacant")
        played = card_from_id(card) if isinstance(card, str) else card
        if played is None:
            raise IllegalAction("unknown_card")
        hand = self.hands[seat]
        if played not in hand:
            raise IllegalAction("card_not_in_hand")
        if played not in legal_plays(hand, self.lead_suit):
            raise IllegalAction("must_follow_suit")

        hand.remove(played)
        self.played.append(played)
        self.trick.append(_Play(seat=seat, card=played))
        self.current_seat = (seat + 1) % MAX_PLAYERS

        if len(self.trick) == MAX_PLAYERS:
            self._complete_trick()

    def _complete_trick(self):
        winner_idx = trick_winner([play.card for play in self.trick], self.trump)
        winner_seat = self.trick[winner_idx].seat
        self.tricks_won[team_of(winner_seat)] += 1
        self.last_trick = self.trick
        self.last_trick_winner = winner_seat
        self.trick = []
        self.current_seat = winner_seat
        if all(len(hand) == 0 for hand in self.hands):
            self._finish_round()

    def _finish_round(self):
        chooser_team = team_of(self.chooser_seat or 0)
        outcome = score_round(self.tricks_won, chooser_team, self.carry_over)
        if outcome.winner_team is not None:
            team = outcome.winner_team
            self.tokens[team] = min(self.target_tokens, self.tokens[team] + outcome.tokens)
        self.carry_over = outcome.carry_over
        summary = RoundSummary(
            round=self.round_number,
            dealer_index=self.dealer_seat,
            trump_chooser_index=self.chooser_seat or 0,
            trump_suit=self.trump,
            tricks_won=list(self.tricks_won),
            winner_team=outcome.winner_team,
            tokens_awarded=outcome.tokens,
            carry_bonus=outcome.carry_bonus,
            carry_over=outcome.carry_over,
        )
        self.round_history.append(summary)
        logger.info(
            "Room %s round %s scored: tricks=%s winner=%s tokens=%s totals=%s",
            self.id,
            self.round_number,
            self.tricks_won,
            outcome.winner_team,
            outcome.tokens,
            self.tokens,
        )

        if any(total >= self.target_tokens for total in self.tokens):
            self.state = "finished"
            self.winner_team = 0 if self.tokens[0] >= self.target_tokens else 1
            self.current_seat = None
            logger.info("Room %s finished: team %s wins %s", self.id, self.winner_team, self.tokens)
            return

        self.dealer_seat = (self.dealer_seat + 1) % MAX_PLAYERS
        self._start_round()

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------
    def _public_plays(self, plays: Sequence[_Play]) -> List[TrickPlay]:
        result: List[TrickPlay] = []
        for play in plays:
            holder = self.players[play.seat] if play.seat < len(self.players) else None
            result.append(
                TrickPlay(player_id=holder.id if holder else None, seat=play.seat, card=play.card)
            )
        return result

    def to_state(self) -> GameState:
        players = [
            PublicPlayer(
                id=player.id,
                name=player.name,
                seat=player.seat,
                team=player.team,
                hand_size=len(self.hands[player.seat]) if player.seat < len(self.hands) else 0,
            )
            for player in self.seated
        ]
        return GameState(
            room_id=self.id,
            players=players,
            current_player_index=self.current_seat,
            game_state=self.state,
            trick=self._public_plays(self.trick),
            trump_suit=self.trump,
            lead_suit=self.lead_suit,
            round=self.round_number,
            tokens=list(self.tokens),
            tricks_won=list(self.tricks_won),
            dealer_index=self.dealer_seat,
            trump_chooser_index=self.chooser_seat,
            carry_over=self.carry_over,
            target_tokens=self.target_tokens,
            last_trick=self._public_plays(self.last_trick),
            last_trick_winner=self.last_trick_winner,
            last_round=self.round_history[-1] if self.round_history else None,
            winner_team=self.winner_team,
        )

    def hand_for(self, player_id: str) -> HandView:
        seat = self.seat_of(player_id)
        if seat is None or seat >= len(self.hands):
            return HandView()
        legal = self.legal_plays(seat) if seat == self.current_seat else []
        return HandView(
            cards=list(self.hands[seat]),
            legal_card_ids=[card.id for card in legal],
        )
