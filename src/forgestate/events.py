"""Typed events recognized in Forge simulation log lines.

Each recognized line becomes exactly one of the frozen dataclasses below.
The set is closed: ``EventKind`` lists every variant and the mutator keeps
one handler per kind.
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Union


class EventKind(Enum):
    """Event categories, named after the Forge log captions they come from."""
    PLAYER_SETUP = "PlayerSetup"
    MULLIGAN = "Mulligan"
    TURN_CHANGE = "TurnChange"
    LAND_PLAYED = "LandPlayed"
    SPELL_CAST = "SpellCast"
    ATTACK = "Attack"
    BLOCK = "Block"
    DAMAGE_TO_PLAYER = "DamageToPlayer"
    LIFE_GAIN = "LifeGain"
    CARD_REMOVED = "CardRemoved"
    GAME_END = "GameEnd"


@dataclass(frozen=True)
class PlayerSetup:
    kind: ClassVar[EventKind] = EventKind.PLAYER_SETUP
    player1: str
    player2: str


@dataclass(frozen=True)
class Mulligan:
    kind: ClassVar[EventKind] = EventKind.MULLIGAN
    player: str
    hand_size: int


@dataclass(frozen=True)
class TurnChange:
    kind: ClassVar[EventKind] = EventKind.TURN_CHANGE
    turn_num: int
    player: str


@dataclass(frozen=True)
class LandPlayed:
    kind: ClassVar[EventKind] = EventKind.LAND_PLAYED
    player: str
    card_name: str
    card_id: str


@dataclass(frozen=True)
class SpellCast:
    kind: ClassVar[EventKind] = EventKind.SPELL_CAST
    player: str
    card_name: str
    card_id: str


@dataclass(frozen=True)
class Attack:
    kind: ClassVar[EventKind] = EventKind.ATTACK
    player: str
    card_name: str
    card_id: str


@dataclass(frozen=True)
class Block:
    """A blocker assigned to an attacker.

    ``player`` is the blocking player when the line names one. It is only
    used to place a blocker that no earlier line introduced.
    """
    kind: ClassVar[EventKind] = EventKind.BLOCK
    blocker_name: str
    blocker_id: str
    attacker_name: str
    attacker_id: str
    player: Optional[str] = None


@dataclass(frozen=True)
class DamageToPlayer:
    """Damage dealt to a player.

    Combat damage lines also carry the source card.
    """
    kind: ClassVar[EventKind] = EventKind.DAMAGE_TO_PLAYER
    damage: int
    target_player: str
    source_name: Optional[str] = None
    source_id: Optional[str] = None
    combat: bool = False


@dataclass(frozen=True)
class LifeGain:
    kind: ClassVar[EventKind] = EventKind.LIFE_GAIN
    player: str
    amount: int


@dataclass(frozen=True)
class CardRemoved:
    """A card left the battlefield (destroyed or moved to another zone)."""
    kind: ClassVar[EventKind] = EventKind.CARD_REMOVED
    card_name: str
    card_id: str


@dataclass(frozen=True)
class GameEnd:
    """The game is over.

    ``declared_winner`` is whatever name the result line printed. The winner
    is decided from life totals; this name is only compared against it.
    """
    kind: ClassVar[EventKind] = EventKind.GAME_END
    declared_winner: Optional[str] = None
    is_draw: bool = False


Event = Union[
    PlayerSetup,
    Mulligan,
    TurnChange,
    LandPlayed,
    SpellCast,
    Attack,
    Block,
    DamageToPlayer,
    LifeGain,
    CardRemoved,
    GameEnd,
]
