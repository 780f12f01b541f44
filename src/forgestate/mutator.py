"""Pure state transitions, one handler per event kind.

``apply(state, event)`` never touches ``state``: it returns a new snapshot
that shares only the branches the event did not modify. Events that refer
to an unknown player or card are tolerated as no-ops; ``apply_event`` also
reports why, so the caller can decide whether to log it.
"""

from dataclasses import replace
from typing import Callable, Mapping, NamedTuple, Optional

from forgestate import entities
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
from forgestate.model import CardInstance, MatchOutcome, MatchState, PlayerState


class Transition(NamedTuple):
    """Result of applying one event.

    ``miss`` describes a reference that could not be resolved, or a result
    line whose printed winner the life totals do not confirm. It may
    accompany a partial update (e.g. a block whose attacker is unknown still
    places the blocker). ``event`` is the event that was applied.
    """
    state: MatchState
    miss: Optional[str] = None
    event: Optional[Event] = None


Handler = Callable[[MatchState, Event], Transition]


def _unknown_player(name: str) -> str:
    return f"unknown player {name!r}"


def _setup(state: MatchState, event: PlayerSetup) -> Transition:
    if state.is_initialized:
        return Transition(state, "players already set up")
    return Transition(replace(state, players={
        event.player1: PlayerState(name=event.player1),
        event.player2: PlayerState(name=event.player2),
    }))


def _mulligan(state: MatchState, event: Mulligan) -> Transition:
    player = state.players.get(event.player)
    if player is None:
        return Transition(state, _unknown_player(event.player))
    return Transition(state.with_player(replace(player, hand_size=event.hand_size)))


def _clear_combat(player: PlayerState) -> PlayerState:
    if not any(card.in_combat for card in player.battlefield):
        return player
    battlefield = tuple(
        replace(card, is_attacking=False, is_blocked=False) if card.in_combat else card
        for card in player.battlefield
    )
    return replace(player, battlefield=battlefield)


def _turn_change(state: MatchState, event: TurnChange) -> Transition:
    if event.turn_num < state.turn:
        return Transition(
            state, f"stale turn {event.turn_num} (current turn {state.turn})"
        )
    players = {name: _clear_combat(p) for name, p in state.players.items()}
    return Transition(replace(
        state,
        turn=event.turn_num,
        active_player_name=event.player,
        players=players,
    ))


def _enter_battlefield(state: MatchState, event: Event) -> Transition:
    # Shared by LandPlayed and SpellCast; repeated ids under the same
    # player are appended again, as the log reports them.
    player = state.players.get(event.player)
    if player is None:
        return Transition(state, _unknown_player(event.player))
    holder = entities.owner_of(state, event.card_id)
    if holder is not None and holder != event.player:
        return Transition(
            state, f"card {event.card_id} already controlled by {holder!r}"
        )
    card = CardInstance(id=event.card_id, name=event.card_name)
    player = replace(player, battlefield=player.battlefield + (card,))
    return Transition(state.with_player(player))


def _attack(state: MatchState, event: Attack) -> Transition:
    if event.player not in state.players:
        return Transition(state, _unknown_player(event.player))
    state, card = entities.ensure_present(
        state, event.player, event.card_id, event.card_name
    )
    return Transition(entities.replace_card(state, replace(card, is_attacking=True)))


def _blocker_owner(state: MatchState, event: Block) -> Optional[str]:
    owner = entities.owner_of(state, event.blocker_id)
    if owner is not None:
        return owner
    if event.player in state.players:
        return event.player
    attacker_owner = entities.owner_of(state, event.attacker_id)
    if attacker_owner is None:
        return None
    # The defender is whoever does not control the attacker
    for name in state.players:
        if name != attacker_owner:
            return name
    return None


def _block(state: MatchState, event: Block) -> Transition:
    attacker = entities.find_by_id(state, event.attacker_id)
    owner = _blocker_owner(state, event)
    if owner is None and attacker is None:
        return Transition(
            state,
            f"block of unknown attacker {event.attacker_id} by unplaced "
            f"blocker {event.blocker_id}",
        )
    if owner is not None:
        state, _ = entities.ensure_present(
            state, owner, event.blocker_id, event.blocker_name
        )
    if attacker is None:
        return Transition(state, f"unknown attacker {event.attacker_id}")
    return Transition(entities.replace_card(state, replace(attacker, is_blocked=True)))


def _adjust_life(state: MatchState, name: str, delta: int) -> Transition:
    player = state.players.get(name)
    if player is None:
        return Transition(state, _unknown_player(name))
    # No floor: life below zero is a real game value
    return Transition(state.with_player(replace(player, life=player.life + delta)))


def _damage(state: MatchState, event: DamageToPlayer) -> Transition:
    return _adjust_life(state, event.target_player, -event.damage)


def _life_gain(state: MatchState, event: LifeGain) -> Transition:
    return _adjust_life(state, event.player, event.amount)


def _card_removed(state: MatchState, event: CardRemoved) -> Transition:
    new_state = entities.remove_by_id(state, event.card_id)
    if new_state is state:
        return Transition(state, f"card {event.card_id} not on the battlefield")
    return Transition(new_state)


def _game_end(state: MatchState, event: GameEnd) -> Transition:
    if state.winner_name is not None:
        return Transition(state, f"winner already decided: {state.winner_name!r}")
    if event.is_draw:
        return Transition(replace(state, outcome=MatchOutcome.DRAW))

    # The winner comes from life totals only; a printed name is just a hint
    alive = [name for name, p in state.players.items() if p.life > 0]
    declared = event.declared_winner
    if len(alive) != 1:
        # Concession, timeout or drifted life totals: refuse to guess
        miss = None
        if declared is not None:
            miss = f"declared winner {declared!r} not confirmed by life totals"
        return Transition(replace(state, outcome=MatchOutcome.AMBIGUOUS), miss)

    winner = alive[0]
    miss = None
    if declared is not None and declared != winner:
        miss = f"declared winner {declared!r} disagrees with life totals ({winner!r})"
    return Transition(
        replace(state, winner_name=winner, outcome=MatchOutcome.WON), miss
    )


DEFAULT_HANDLERS: Mapping[EventKind, Handler] = {
    EventKind.PLAYER_SETUP: _setup,
    EventKind.MULLIGAN: _mulligan,
    EventKind.TURN_CHANGE: _turn_change,
    EventKind.LAND_PLAYED: _enter_battlefield,
    EventKind.SPELL_CAST: _enter_battlefield,
    EventKind.ATTACK: _attack,
    EventKind.BLOCK: _block,
    EventKind.DAMAGE_TO_PLAYER: _damage,
    EventKind.LIFE_GAIN: _life_gain,
    EventKind.CARD_REMOVED: _card_removed,
    EventKind.GAME_END: _game_end,
}


class StateMutator:
    """Registry of event handlers.

    Example:
        mutator = StateMutator()
        new_state = mutator.apply(state, TurnChange(turn_num=2, player="Ai(2)-Burn"))
    """

    def __init__(self, handlers: Optional[Mapping[EventKind, Handler]] = None) -> None:
        self._handlers: dict[EventKind, Handler] = dict(
            DEFAULT_HANDLERS if handlers is None else handlers
        )

    def register(self, kind: EventKind, handler: Handler) -> None:
        """Install or replace the handler for ``kind``."""
        self._handlers[kind] = handler

    def apply_event(self, state: MatchState, event: Event) -> Transition:
        """Apply ``event`` and report any unresolved reference.

        Raises:
            LookupError: No handler is registered for the event's kind.
        """
        if event.kind is not EventKind.PLAYER_SETUP and not state.is_initialized:
            return Transition(state, f"{event.kind.value} before player setup", event)
        handler = self._handlers.get(event.kind)
        if handler is None:
            raise LookupError(f"No handler for event kind: {event.kind.value}")
        return handler(state, event)._replace(event=event)

    def apply(self, state: MatchState, event: Event) -> MatchState:
        return self.apply_event(state, event).state


_default_mutator = StateMutator()


def apply_event(state: MatchState, event: Event) -> Transition:
    return _default_mutator.apply_event(state, event)


def apply(state: MatchState, event: Event) -> MatchState:
    """Apply one event with the default handlers, returning the new state."""
    return _default_mutator.apply(state, event)
