"""Match state snapshots reconstructed from Forge simulation logs.

Every type here is immutable. A transition never edits a snapshot in place;
it builds a new one that shares the untouched branches with its predecessor.
That keeps previously issued snapshots valid for any reader holding them.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional

STARTING_LIFE = 20
STARTING_HAND_SIZE = 7


class MatchOutcome(Enum):
    """How a match ended, as far as the log tells us."""
    IN_PROGRESS = "in_progress"
    WON = "won"
    DRAW = "draw"
    # Game ended but no single winner could be determined from the state
    AMBIGUOUS = "ambiguous"


class MatchPhase(Enum):
    """Lifecycle of a reconstructed match."""
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class CardInstance:
    """A permanent on some player's battlefield.

    ``id`` is the engine-assigned identity token. It is unique across the
    whole battlefield, not per player, and is kept as a string.
    """
    id: str
    name: str
    is_tapped: bool = False
    is_attacking: bool = False
    is_blocked: bool = False

    @property
    def in_combat(self) -> bool:
        return self.is_attacking or self.is_blocked

    def to_dict(self) -> dict:
        """Convert to simple dict for snapshot serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "isTapped": self.is_tapped,
            "isAttacking": self.is_attacking,
            "isBlocked": self.is_blocked,
        }


@dataclass(frozen=True)
class PlayerState:
    """A player in the match."""
    name: str
    life: int = STARTING_LIFE
    battlefield: tuple[CardInstance, ...] = ()
    hand_size: int = STARTING_HAND_SIZE

    def __post_init__(self) -> None:
        if not isinstance(self.battlefield, tuple):
            object.__setattr__(self, "battlefield", tuple(self.battlefield))
        if self.hand_size < 0:
            raise ValueError(f"hand_size must be >= 0, got {self.hand_size}")

    def find_card(self, card_id: str) -> Optional[CardInstance]:
        for card in self.battlefield:
            if card.id == card_id:
                return card
        return None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "life": self.life,
            "handSize": self.hand_size,
            "battlefield": [card.to_dict() for card in self.battlefield],
        }


def _freeze_players(players: Mapping[str, PlayerState]) -> Mapping[str, PlayerState]:
    """Copy into a private dict behind a read-only view."""
    return MappingProxyType(dict(players))


@dataclass(frozen=True)
class MatchState:
    """Snapshot of a whole match.

    ``players`` is a read-only mapping keyed by the full player name as it
    appears in the log (e.g. ``"Ai(1)-DeckA (AI: Control)"``). It holds either
    no entries (before the setup line) or exactly two.

    Snapshots compare by value but are not hashable.
    """
    # The players mapping is unhashable, so no hash is generated
    __hash__ = None
    turn: int = 0
    active_player_name: str = ""
    players: Mapping[str, PlayerState] = field(default_factory=dict)
    winner_name: Optional[str] = None
    outcome: MatchOutcome = MatchOutcome.IN_PROGRESS

    def __post_init__(self) -> None:
        if self.turn < 0:
            raise ValueError(f"turn must be >= 0, got {self.turn}")
        if len(self.players) not in (0, 2):
            raise ValueError(
                f"a match has 0 or 2 players, got {len(self.players)}"
            )
        for key, player in self.players.items():
            if key != player.name:
                raise ValueError(f"player key {key!r} != name {player.name!r}")
        object.__setattr__(self, "players", _freeze_players(self.players))

    @property
    def phase(self) -> MatchPhase:
        if not self.players:
            return MatchPhase.UNINITIALIZED
        if self.outcome is not MatchOutcome.IN_PROGRESS:
            return MatchPhase.TERMINAL
        return MatchPhase.ACTIVE

    @property
    def is_initialized(self) -> bool:
        return bool(self.players)

    @property
    def player_names(self) -> tuple[str, ...]:
        return tuple(self.players)

    def iter_cards(self) -> Iterator[tuple[str, CardInstance]]:
        """Yield (owner name, card) for every battlefield entity."""
        for name, player in self.players.items():
            for card in player.battlefield:
                yield name, card

    def with_player(self, player: PlayerState) -> "MatchState":
        """Return a copy with one existing player replaced."""
        if player.name not in self.players:
            raise KeyError(player.name)
        players = dict(self.players)
        players[player.name] = player
        return replace(self, players=players)

    def with_players(self, players: Iterable[PlayerState]) -> "MatchState":
        return replace(self, players={p.name: p for p in players})

    def to_dict(self) -> dict:
        """Get a JSON-ready snapshot of the match."""
        return {
            "turn": self.turn,
            "activePlayerName": self.active_player_name,
            "players": {
                name: player.to_dict() for name, player in self.players.items()
            },
            "winnerName": self.winner_name,
            "outcome": self.outcome.value,
            "phase": self.phase.value,
        }


def initial_state() -> MatchState:
    """Empty, uninitialized match (no players yet)."""
    return MatchState()
