"""Battlefield entity lookup and insertion by global card id.

Card ids are unique across the whole battlefield, so every lookup scans all
players rather than a single owner.
"""

from dataclasses import replace
from typing import Optional

from forgestate.model import CardInstance, MatchState


def find_by_id(state: MatchState, card_id: str) -> Optional[CardInstance]:
    """Find a battlefield entity by id, whoever controls it.

    Args:
        state: Snapshot to search.
        card_id: Engine-assigned identity token.

    Returns:
        The first matching CardInstance in player order, or None.
    """
    for _, card in state.iter_cards():
        if card.id == card_id:
            return card
    return None


def owner_of(state: MatchState, card_id: str) -> Optional[str]:
    """Name of the player whose battlefield holds ``card_id``, if any."""
    for owner, card in state.iter_cards():
        if card.id == card_id:
            return owner
    return None


def ensure_present(
    state: MatchState,
    owner_name: str,
    card_id: str,
    card_name: str,
) -> tuple[MatchState, CardInstance]:
    """Insert a card under ``owner_name`` unless its id already exists.

    Combat lines may mention permanents that no land or cast line introduced,
    so attack and block handling goes through here. An existing entity is
    returned untouched, wherever it lives, together with the same state.

    Raises:
        KeyError: ``owner_name`` is not a player of this match.
    """
    existing = find_by_id(state, card_id)
    if existing is not None:
        return state, existing

    owner = state.players[owner_name]
    card = CardInstance(id=card_id, name=card_name)
    new_owner = replace(owner, battlefield=owner.battlefield + (card,))
    return state.with_player(new_owner), card


def replace_card(state: MatchState, card: CardInstance) -> MatchState:
    """Swap in an updated card for every entity sharing its id.

    Only the owning player's battlefield is rebuilt. Returns ``state`` itself
    when the id is not on the battlefield.
    """
    owner_name = owner_of(state, card.id)
    if owner_name is None:
        return state
    owner = state.players[owner_name]
    battlefield = tuple(card if c.id == card.id else c for c in owner.battlefield)
    return state.with_player(replace(owner, battlefield=battlefield))


def remove_by_id(state: MatchState, card_id: str) -> MatchState:
    """Remove the entity with ``card_id`` from whichever battlefield holds it.

    Idempotent: returns ``state`` itself when nothing matches.
    """
    if find_by_id(state, card_id) is None:
        return state
    players = []
    for player in state.players.values():
        kept = tuple(c for c in player.battlefield if c.id != card_id)
        if len(kept) != len(player.battlefield):
            player = replace(player, battlefield=kept)
        players.append(player)
    return state.with_players(players)
