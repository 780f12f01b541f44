"""Tests for state transitions."""

from dataclasses import replace

import pytest

from forgestate.events import (
    Attack,
    Block,
    CardRemoved,
    DamageToPlayer,
    EventKind,
    GameEnd,
    LandPlayed,
    LifeGain,
    Mulligan,
    PlayerSetup,
    SpellCast,
    TurnChange,
)
from forgestate.model import (
    CardInstance,
    MatchOutcome,
    MatchPhase,
    MatchState,
    PlayerState,
    initial_state,
)
from forgestate.mutator import StateMutator, Transition, apply, apply_event

from conftest import P1, P2


def _card(state, card_id):
    for _, card in state.iter_cards():
        if card.id == card_id:
            return card
    return None


class TestSetup:

    def test_creates_both_players(self):
        state = apply(initial_state(), PlayerSetup(P1, P2))
        assert state.player_names == (P1, P2)
        for player in state.players.values():
            assert player.life == 20
            assert player.hand_size == 7
            assert player.battlefield == ()
        assert state.phase is MatchPhase.ACTIVE

    def test_second_setup_ignored(self, active_state):
        result = apply_event(active_state, PlayerSetup("Ai(1)-X", "Ai(2)-Y"))
        assert result.state is active_state
        assert result.miss


class TestUninitialized:
    """Nothing but setup applies before the players exist."""

    @pytest.mark.parametrize("event", [
        TurnChange(1, P1),
        LandPlayed(P1, "Forest", "101"),
        DamageToPlayer(3, P2),
        GameEnd(declared_winner=P1),
    ])
    def test_noop(self, event):
        state = initial_state()
        result = apply_event(state, event)
        assert result.state is state
        assert result.miss


class TestHandAndTurn:

    def test_mulligan(self, active_state):
        state = apply(active_state, Mulligan(P2, 6))
        assert state.players[P2].hand_size == 6
        assert state.players[P1].hand_size == 7

    def test_mulligan_unknown_player(self, active_state):
        result = apply_event(active_state, Mulligan("Ai(9)-Ghost", 6))
        assert result.state is active_state
        assert "Ai(9)-Ghost" in result.miss

    def test_turn_change(self, active_state):
        state = apply(active_state, TurnChange(2, P2))
        assert state.turn == 2
        assert state.active_player_name == P2

    def test_turn_never_goes_back(self, board_state):
        result = apply_event(board_state, TurnChange(1, P2))
        assert result.state is board_state
        assert "stale turn" in result.miss

    def test_turn_change_clears_only_combat_flags(self, board_state):
        state = apply(board_state, Attack(P1, "Grizzly Bears", "102"))
        state = apply(state, Attack(P2, "Goblin Guide", "202"))
        state = apply(state, Block("Grizzly Bears", "102", "Goblin Guide", "202"))
        bears = replace(_card(state, "102"), is_tapped=True)
        state = state.with_player(replace(
            state.players[P1],
            battlefield=(state.players[P1].battlefield[0], bears),
            life=14,
            hand_size=3,
        ))

        after = apply(state, TurnChange(4, P2))

        for _, card in after.iter_cards():
            assert not card.is_attacking
            assert not card.is_blocked
        assert _card(after, "102").is_tapped
        for name in (P1, P2):
            before_p, after_p = state.players[name], after.players[name]
            assert after_p.life == before_p.life
            assert after_p.hand_size == before_p.hand_size
            assert [c.id for c in after_p.battlefield] == [c.id for c in before_p.battlefield]


class TestBattlefield:

    def test_land_and_spell(self, active_state):
        state = apply(active_state, LandPlayed(P1, "Forest", "101"))
        state = apply(state, SpellCast(P1, "Llanowar Elves", "102"))
        assert state.players[P1].battlefield == (
            CardInstance("101", "Forest"),
            CardInstance("102", "Llanowar Elves"),
        )
        assert state.players[P2].battlefield == ()

    def test_repeated_cast_appends_again(self, active_state):
        """Duplicate ids from repeated cast lines are kept as logged."""
        event = SpellCast(P1, "Opt", "300")
        state = apply(apply(active_state, event), event)
        assert [c.id for c in state.players[P1].battlefield] == ["300", "300"]

    def test_id_held_by_other_player(self, board_state):
        result = apply_event(board_state, LandPlayed(P2, "Forest", "101"))
        assert result.state is board_state
        assert result.miss

    def test_unknown_player(self, active_state):
        result = apply_event(active_state, LandPlayed("Ai(3)-X", "Island", "9"))
        assert result.state is active_state

    def test_destroy(self, board_state):
        state = apply(board_state, CardRemoved("Goblin Guide", "202"))
        assert [c.id for c in state.players[P2].battlefield] == ["201"]

    def test_destroy_unknown_card(self, board_state):
        result = apply_event(board_state, CardRemoved("Ghost", "999"))
        assert result.state is board_state
        assert "999" in result.miss


class TestCombat:

    def test_attack_existing_card(self, board_state):
        state = apply(board_state, Attack(P1, "Grizzly Bears", "102"))
        assert _card(state, "102").is_attacking
        assert not _card(board_state, "102").is_attacking

    def test_attack_forward_reference(self, active_state):
        """An attacker no earlier line introduced is created on the spot."""
        state = apply(active_state, Attack(P1, "Raging Goblin", "55"))
        assert state.players[P1].battlefield == (
            CardInstance("55", "Raging Goblin", is_attacking=True),
        )

    def test_attack_unknown_player(self, board_state):
        result = apply_event(board_state, Attack("Ai(7)-X", "Bear", "102"))
        assert result.state is board_state

    def test_block_marks_attacker(self, board_state):
        state = apply(board_state, Attack(P1, "Grizzly Bears", "102"))
        state = apply(state, Block("Goblin Guide", "202", "Grizzly Bears", "102", P2))
        bears = _card(state, "102")
        assert bears.is_attacking and bears.is_blocked
        assert not _card(state, "202").is_blocked

    def test_block_creates_blocker_under_named_player(self, board_state):
        state = apply(board_state, Block("Wall of Wood", "60", "Grizzly Bears", "102", P2))
        assert state.players[P2].battlefield[-1] == CardInstance("60", "Wall of Wood")
        assert _card(state, "102").is_blocked

    def test_block_creates_blocker_under_defender(self, board_state):
        """Without a named player the blocker goes to the attacker's opponent."""
        state = apply(board_state, Block("Wall of Wood", "60", "Grizzly Bears", "102"))
        assert state.players[P2].battlefield[-1].id == "60"

    def test_block_unknown_attacker(self, board_state):
        result = apply_event(board_state, Block("Goblin Guide", "202", "Ghost", "999"))
        assert result.miss
        assert _card(result.state, "202") == _card(board_state, "202")

    def test_block_nothing_resolvable(self, board_state):
        result = apply_event(board_state, Block("Wall", "60", "Ghost", "999"))
        assert result.state is board_state


class TestLife:

    def test_damage(self, active_state):
        state = apply(active_state, DamageToPlayer(3, P2))
        assert state.players[P2].life == 17

    def test_damage_below_zero(self, active_state):
        state = apply(active_state, DamageToPlayer(25, P1))
        assert state.players[P1].life == -5

    def test_damage_unknown_player(self, active_state):
        result = apply_event(active_state, DamageToPlayer(3, "Grizzly Bears (55)"))
        assert result.state is active_state

    def test_life_gain(self, active_state):
        state = apply(active_state, LifeGain(P1, 4))
        assert state.players[P1].life == 24


class TestGameEnd:

    def _with_life(self, state, p1_life, p2_life):
        return state.with_players([
            replace(state.players[P1], life=p1_life),
            replace(state.players[P2], life=p2_life),
        ])

    def test_single_survivor_wins(self, active_state):
        state = apply(self._with_life(active_state, 5, -2), GameEnd())
        assert state.winner_name == P1
        assert state.outcome is MatchOutcome.WON
        assert state.phase is MatchPhase.TERMINAL

    def test_both_alive_is_ambiguous(self, active_state):
        """No guessing when both players still have life."""
        state = apply(active_state, GameEnd())
        assert state.winner_name is None
        assert state.outcome is MatchOutcome.AMBIGUOUS

    def test_nobody_alive_is_ambiguous(self, active_state):
        state = apply(self._with_life(active_state, 0, -3), GameEnd())
        assert state.winner_name is None
        assert state.outcome is MatchOutcome.AMBIGUOUS

    def test_unknown_declared_winner_falls_back_to_life(self, active_state):
        state = apply(active_state, GameEnd(declared_winner="Somebody Else"))
        assert state.winner_name is None
        assert state.outcome is MatchOutcome.AMBIGUOUS

    def test_declared_winner_needs_life_confirmation(self, active_state):
        """A printed winner is not trusted while both players are alive."""
        result = apply_event(
            self._with_life(active_state, 20, 20), GameEnd(declared_winner=P2)
        )
        assert result.state.winner_name is None
        assert result.state.outcome is MatchOutcome.AMBIGUOUS
        assert P2 in result.miss

    def test_declared_winner_contradicted_by_life(self, active_state):
        result = apply_event(
            self._with_life(active_state, 5, -2), GameEnd(declared_winner=P2)
        )
        assert result.state.winner_name == P1
        assert "disagrees" in result.miss

    def test_declared_winner_confirmed(self, active_state):
        result = apply_event(
            self._with_life(active_state, 5, 0), GameEnd(declared_winner=P1)
        )
        assert result.state.winner_name == P1
        assert result.miss is None

    def test_draw(self, active_state):
        state = apply(active_state, GameEnd(is_draw=True))
        assert state.winner_name is None
        assert state.outcome is MatchOutcome.DRAW

    def test_winner_never_cleared(self, active_state):
        won = apply(self._with_life(active_state, 5, 0), GameEnd())
        for event in (GameEnd(is_draw=True), GameEnd(declared_winner=P2), GameEnd()):
            assert apply(won, event).winner_name == P1

    def test_mutations_after_game_end_still_apply(self, active_state):
        won = apply(self._with_life(active_state, 5, 0), GameEnd())
        state = apply(won, DamageToPlayer(2, P2))
        assert state.players[P2].life == -2
        assert state.winner_name == P1

    def test_transition_carries_event(self, active_state):
        event = GameEnd(is_draw=True)
        assert apply_event(active_state, event).event is event


class TestRegistry:

    def test_custom_handler(self, active_state):
        def heal_everyone(state, event):
            return Transition(state.with_players(
                replace(p, life=p.life + event.amount) for p in state.players.values()
            ))

        mutator = StateMutator()
        mutator.register(EventKind.LIFE_GAIN, heal_everyone)
        state = mutator.apply(active_state, LifeGain(P1, 2))
        assert [p.life for p in state.players.values()] == [22, 22]

    def test_missing_handler(self, active_state):
        mutator = StateMutator(handlers={})
        with pytest.raises(LookupError):
            mutator.apply(active_state, LifeGain(P1, 2))

    def test_input_state_never_modified(self, board_state):
        before = board_state.to_dict()
        for event in (
            TurnChange(5, P2),
            Attack(P1, "Grizzly Bears", "102"),
            CardRemoved("Forest", "101"),
            DamageToPlayer(7, P1),
            GameEnd(),
        ):
            apply(board_state, event)
        assert board_state.to_dict() == before


class TestModelInvariants:

    def test_player_count(self):
        with pytest.raises(ValueError):
            MatchState(players={P1: PlayerState(P1)})

    def test_players_read_only(self, active_state):
        with pytest.raises(TypeError):
            active_state.players[P1] = PlayerState(P1)

    def test_negative_hand_size(self):
        with pytest.raises(ValueError):
            PlayerState(P1, hand_size=-1)
