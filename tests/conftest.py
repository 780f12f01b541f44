import pytest

from forgestate import initial_state, parse_line

P1 = "Ai(1)-DeckA (AI: Control)"
P2 = "Ai(2)-DeckB (AI: Aggro)"
SETUP_LINE = f"{P1} vs {P2} - 1 game of Constructed"


def feed(state, *lines):
    """Apply lines in order, keeping the prior state on unrecognized ones."""
    for line in lines:
        new_state = parse_line(line, state)
        if new_state is not None:
            state = new_state
    return state


@pytest.fixture
def active_state():
    """Match right after the setup line."""
    return parse_line(SETUP_LINE, initial_state())


@pytest.fixture
def board_state(active_state):
    """Turn 3 with a land and a creature on each side."""
    return feed(
        active_state,
        f"Turn: Turn 3 ({P1})",
        f"Land: {P1} played Forest (101)",
        f"Add To Stack: {P1} cast Grizzly Bears (102)",
        f"Land: {P2} played Mountain (201)",
        f"Add To Stack: {P2} cast Goblin Guide (202)",
    )
