"""Line classification for Forge simulation logs.

A line is tried against an ordered list of grammars and the first one that
matches produces the event. Order matters wherever two grammars can match
the same text, e.g. combat damage must be tried before generic damage:

    Damage: Grizzly Bears (55) deals 2 combat damage to Ai(2)-Burn (AI: Aggro).
    Damage: Shock deals 2 damage to Ai(2)-Burn (AI: Aggro).

Player names are free text in the log. Once the setup line has named both
players, grammars that capture a player only accept one of those exact
names, so a name containing "vs", parentheses or digits cannot be split in
the wrong place.
"""

import re
from functools import lru_cache
from typing import Callable, Iterable, Optional, Sequence

from forgestate.errors import MalformedLineError
from forgestate.events import (
    Attack,
    Block,
    CardRemoved,
    DamageToPlayer,
    Event,
    EventKind,
    GameEnd,
    LandPlayed,
    LifeGain,
    Mulligan,
    PlayerSetup,
    SpellCast,
    TurnChange,
)

# Placeholder substituted with the player-name pattern at compile time
PLAYER = "<PLAYER>"
# Any parenthesised token; ids are identity strings, never numbers
CARD_ID = r"[^()\s]+"
# Counts are captured loosely so a garbled number is reported, not skipped
COUNT = r"\S+"

# Header printed by `forge sim`; deck names may contain spaces:
#   Ai(1)-Mono Red (AI: Default) vs Ai(2)-Elf Ball - 3 games of Constructed
SETUP_PLAYER_PATTERN = re.compile(r"Ai\(\d+\)-\S.*")
SETUP_SEPARATOR = re.compile(r" vs (?=Ai\(\d+\)-\S)")
SETUP_SUFFIX = re.compile(r" - \S+ games? of .+$")

Builder = Callable[[re.Match, str], Event]


@lru_cache(maxsize=256)
def _compile(template: str, flags: int, names: tuple[str, ...]) -> re.Pattern:
    if names:
        player = "|".join(re.escape(name) for name in names)
    else:
        player = ".+"
    return re.compile(template.replace(PLAYER, player), flags)


def _count(match: re.Match, field: str, line: str, kind: EventKind) -> int:
    """Convert a captured count, raising MalformedLineError if it is unusable."""
    value = match.group(field)
    try:
        number = int(value)
    except ValueError:
        raise MalformedLineError(line, field, value, kind.value) from None
    if number < 0:
        raise MalformedLineError(line, field, value, kind.value)
    return number


class LineGrammar:
    """One recognizable line shape and how to turn a match into an event."""

    def __init__(
        self,
        kind: EventKind,
        template: str,
        build: Optional[Builder],
        flags: int = 0,
        anchor_players: bool = True,
    ) -> None:
        """Initialize the grammar.

        Args:
            kind: Event kind this grammar produces.
            template: Regex source; ``<PLAYER>`` marks player-name captures.
            build: Callback receiving (match, line) and returning the event.
            flags: ``re`` flags for the compiled pattern.
            anchor_players: If False, ``<PLAYER>`` always matches free text.
        """
        self.kind = kind
        self.template = template
        self.build = build
        self.flags = flags
        self.anchor_players = anchor_players

    def pattern(self, names: tuple[str, ...] = ()) -> re.Pattern:
        if not self.anchor_players:
            names = ()
        return _compile(self.template, self.flags, names)

    def match(
        self,
        line: str,
        has_players: bool,
        names: tuple[str, ...] = (),
    ) -> Optional[Event]:
        found = self.pattern(names).search(line)
        if found is None:
            return None
        return self.build(found, line)

    def __repr__(self) -> str:
        return f"LineGrammar({self.kind.value}, {self.template!r})"


class SetupGrammar(LineGrammar):
    """The ``A vs B`` header, only tried while no players are known.

    Each side is kept whole, from ``Ai(n)-`` up to the next ``vs`` or the
    ``- N game(s) of <Type>`` suffix, so the names match later lines exactly.
    """

    def __init__(self) -> None:
        super().__init__(
            EventKind.PLAYER_SETUP,
            SETUP_SEPARATOR.pattern,
            None,
            anchor_players=False,
        )

    def match(
        self,
        line: str,
        has_players: bool,
        names: tuple[str, ...] = (),
    ) -> Optional[Event]:
        if has_players or " vs " not in line:
            return None
        header = SETUP_SUFFIX.sub("", line)
        found = []
        for side in SETUP_SEPARATOR.split(header):
            player = SETUP_PLAYER_PATTERN.search(side)
            if player is not None:
                found.append(player.group(0).strip())
        if len(found) < 2 or found[0] == found[1]:
            return None
        return PlayerSetup(player1=found[0], player2=found[1])


def _mulligan(m: re.Match, line: str) -> Event:
    return Mulligan(
        player=m.group("player"),
        hand_size=_count(m, "hand_size", line, EventKind.MULLIGAN),
    )


def _turn(m: re.Match, line: str) -> Event:
    return TurnChange(
        turn_num=_count(m, "turn_num", line, EventKind.TURN_CHANGE),
        player=m.group("player"),
    )


def _land(m: re.Match, line: str) -> Event:
    return LandPlayed(m.group("player"), m.group("card_name"), m.group("card_id"))


def _cast(m: re.Match, line: str) -> Event:
    return SpellCast(m.group("player"), m.group("card_name"), m.group("card_id"))


def _attack(m: re.Match, line: str) -> Event:
    return Attack(m.group("player"), m.group("card_name"), m.group("card_id"))


def _block(m: re.Match, line: str) -> Event:
    return Block(
        blocker_name=m.group("blocker_name"),
        blocker_id=m.group("blocker_id"),
        attacker_name=m.group("attacker_name"),
        attacker_id=m.group("attacker_id"),
        player=m.group("player"),
    )


def _combat_damage(m: re.Match, line: str) -> Event:
    return DamageToPlayer(
        damage=_count(m, "damage", line, EventKind.DAMAGE_TO_PLAYER),
        target_player=m.group("target_player"),
        source_name=m.group("source_name"),
        source_id=m.group("source_id"),
        combat=True,
    )


def _damage(m: re.Match, line: str) -> Event:
    return DamageToPlayer(
        damage=_count(m, "damage", line, EventKind.DAMAGE_TO_PLAYER),
        target_player=m.group("target_player"),
    )


def _life_gain(m: re.Match, line: str) -> Event:
    return LifeGain(
        player=m.group("player"),
        amount=_count(m, "amount", line, EventKind.LIFE_GAIN),
    )


def _removed(m: re.Match, line: str) -> Event:
    return CardRemoved(card_name=m.group("card_name"), card_id=m.group("card_id"))


def _draw(m: re.Match, line: str) -> Event:
    return GameEnd(is_draw=True)


def _won(m: re.Match, line: str) -> Event:
    return GameEnd(declared_winner=m.group("winner").strip())


DEFAULT_GRAMMARS: tuple[LineGrammar, ...] = (
    SetupGrammar(),
    LineGrammar(
        EventKind.MULLIGAN,
        rf"(?P<player>{PLAYER}) has kept a hand of (?P<hand_size>{COUNT}) cards",
        _mulligan,
    ),
    LineGrammar(
        EventKind.TURN_CHANGE,
        rf"Turn: Turn (?P<turn_num>{COUNT}) \((?P<player>{PLAYER})\)",
        _turn,
    ),
    LineGrammar(
        EventKind.LAND_PLAYED,
        rf"Land: (?P<player>{PLAYER}) played (?P<card_name>.+) \((?P<card_id>{CARD_ID})\)",
        _land,
    ),
    LineGrammar(
        EventKind.SPELL_CAST,
        rf"Add To Stack: (?P<player>{PLAYER}) cast (?P<card_name>.+) \((?P<card_id>{CARD_ID})\)",
        _cast,
        flags=re.IGNORECASE,
    ),
    LineGrammar(
        EventKind.ATTACK,
        rf"Combat: (?P<player>{PLAYER}) assigned (?P<card_name>.+) \((?P<card_id>{CARD_ID})\) to attack",
        _attack,
    ),
    LineGrammar(
        EventKind.BLOCK,
        rf"Combat: (?:(?P<player>{PLAYER}) |.*)assigned (?P<blocker_name>.+) "
        rf"\((?P<blocker_id>{CARD_ID})\) to block (?P<attacker_name>.+) "
        rf"\((?P<attacker_id>{CARD_ID})\)",
        _block,
    ),
    LineGrammar(
        EventKind.DAMAGE_TO_PLAYER,
        rf"Damage: (?P<source_name>.+) \((?P<source_id>{CARD_ID})\) deals "
        rf"(?P<damage>{COUNT}) combat damage to (?P<target_player>{PLAYER})\.",
        _combat_damage,
    ),
    LineGrammar(
        EventKind.DAMAGE_TO_PLAYER,
        rf"Damage: .* deals (?P<damage>{COUNT}) .*damage to (?P<target_player>{PLAYER})\.",
        _damage,
    ),
    LineGrammar(
        EventKind.LIFE_GAIN,
        rf"(?P<player>{PLAYER}) gains (?P<amount>{COUNT}) life\.",
        _life_gain,
    ),
    LineGrammar(
        EventKind.CARD_REMOVED,
        rf"Destroy (?P<card_name>.+) \((?P<card_id>{CARD_ID})\)\.",
        _removed,
    ),
    LineGrammar(
        EventKind.CARD_REMOVED,
        rf"\[Zone Changer: (?P<card_name>.+) \((?P<card_id>{CARD_ID})\)\]",
        _removed,
    ),
    LineGrammar(
        EventKind.GAME_END,
        r"ended in a Draw|Stopping slow match as draw",
        _draw,
        flags=re.IGNORECASE,
    ),
    LineGrammar(
        EventKind.GAME_END,
        r"Game Result: Game \d+ ended in \d+ ms\. (?P<winner>.+) has won!",
        _won,
        anchor_players=False,
    ),
    LineGrammar(
        EventKind.GAME_END,
        r"Match Winner - (?P<winner>.+)!",
        _won,
        anchor_players=False,
    ),
)


def _ordered_names(known_players: Iterable[str]) -> tuple[str, ...]:
    # Longest first so a name that prefixes another cannot win the alternation
    return tuple(sorted(set(known_players), key=lambda name: (-len(name), name)))


class LineClassifier:
    """Ordered, first-match-wins dispatch from raw lines to events.

    Example:
        classifier = LineClassifier()
        event = classifier.classify("Turn: Turn 3 (Ai(1)-Elves)", has_players=True)
    """

    def __init__(self, grammars: Optional[Sequence[LineGrammar]] = None) -> None:
        self._grammars: list[LineGrammar] = list(
            DEFAULT_GRAMMARS if grammars is None else grammars
        )

    @property
    def grammars(self) -> tuple[LineGrammar, ...]:
        return tuple(self._grammars)

    def append(self, grammar: LineGrammar) -> None:
        """Add a grammar after all existing ones (lowest priority)."""
        self._grammars.append(grammar)

    def classify(
        self,
        line: str,
        has_players: bool,
        known_players: Iterable[str] = (),
    ) -> Optional[Event]:
        """Turn one log line into at most one event.

        Args:
            line: A complete log line (surrounding whitespace is ignored).
            has_players: Whether the match already has its two players.
            known_players: Exact player names from the setup line, used to
                anchor player captures. Empty means capture free text.

        Returns:
            The event of the first matching grammar, or None if none match.

        Raises:
            MalformedLineError: A grammar matched but a count did not parse.
        """
        text = line.strip()
        if not text:
            return None
        names = _ordered_names(known_players)
        for grammar in self._grammars:
            event = grammar.match(text, has_players, names)
            if event is not None:
                return event
        return None


_default_classifier = LineClassifier()


def classify(
    line: str,
    has_players: bool,
    known_players: Iterable[str] = (),
) -> Optional[Event]:
    """Classify a line with the default grammar table."""
    return _default_classifier.classify(line, has_players, known_players)
