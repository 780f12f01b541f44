"""Tests for battlefield entity resolution."""

from dataclasses import replace

import pytest

from forgestate import entities
from forgestate.model import CardInstance

from conftest import P1, P2


class TestFindById:

    def test_finds_across_players(self, board_state):
        """Identity is global: lookup does not need the owner."""
        assert entities.find_by_id(board_state, "101") == CardInstance("101", "Forest")
        assert entities.find_by_id(board_state, "202") == CardInstance("202", "Goblin Guide")

    def test_missing(self, board_state):
        assert entities.find_by_id(board_state, "999") is None

    def test_owner_of(self, board_state):
        assert entities.owner_of(board_state, "102") == P1
        assert entities.owner_of(board_state, "201") == P2
        assert entities.owner_of(board_state, "999") is None


class TestEnsurePresent:

    def test_inserts_unknown_card(self, board_state):
        state, card = entities.ensure_present(board_state, P2, "55", "Raging Goblin")
        assert card == CardInstance("55", "Raging Goblin")
        assert state.players[P2].battlefield[-1] == card
        # Input snapshot untouched
        assert entities.find_by_id(board_state, "55") is None

    def test_existing_card_returned_untouched(self, board_state):
        """An id held by another player is not duplicated under the new owner."""
        state, card = entities.ensure_present(board_state, P2, "102", "Whatever")
        assert state is board_state
        assert card == CardInstance("102", "Grizzly Bears")
        assert entities.owner_of(state, "102") == P1

    def test_unknown_owner(self, board_state):
        with pytest.raises(KeyError):
            entities.ensure_present(board_state, "Ai(3)-Nobody", "77", "Ornithopter")


class TestReplaceAndRemove:

    def test_replace_card(self, board_state):
        card = entities.find_by_id(board_state, "202")
        state = entities.replace_card(board_state, replace(card, is_tapped=True))
        assert entities.find_by_id(state, "202").is_tapped
        assert not entities.find_by_id(board_state, "202").is_tapped
        # Untouched player is shared, not copied
        assert state.players[P1] is board_state.players[P1]

    def test_replace_missing_card(self, board_state):
        state = entities.replace_card(board_state, CardInstance("999", "Ghost"))
        assert state is board_state

    def test_remove(self, board_state):
        state = entities.remove_by_id(board_state, "101")
        assert entities.find_by_id(state, "101") is None
        assert [c.id for c in state.players[P1].battlefield] == ["102"]

    def test_remove_is_idempotent(self, board_state):
        once = entities.remove_by_id(board_state, "101")
        twice = entities.remove_by_id(once, "101")
        assert twice is once
