"""Entry points for turning Forge log lines into match snapshots.

``parse_line`` returns None for lines it does not recognize, but it RAISES
``MalformedLineError`` for a recognized line with an unusable count (e.g.
"deals X damage"). Callers feeding a live stream must catch it, or use
``MatchSession``, which logs and skips such lines.

Example:
    state = initial_state()
    for line in lines:
        try:
            new_state = parse_line(line, state)
        except MalformedLineError:
            continue
        if new_state is not None:
            state = new_state
"""

from typing import Optional

from forgestate.classifier import LineClassifier, classify
from forgestate.model import MatchState, initial_state
from forgestate.mutator import StateMutator, Transition, apply_event

__all__ = ["initial_state", "parse_line", "step", "Engine"]


def step(line: str, state: MatchState) -> Optional[Transition]:
    """Classify and apply one line, keeping the reference-miss report.

    Returns:
        The transition, or None if no grammar matched the line.

    Raises:
        MalformedLineError: The line was recognized but a count is unusable.
    """
    event = classify(line, state.is_initialized, state.player_names)
    if event is None:
        return None
    return apply_event(state, event)


def parse_line(line: str, state: MatchState) -> Optional[MatchState]:
    """Apply one log line to ``state``.

    Args:
        line: A complete log line.
        state: The current snapshot; it is never modified.

    Returns:
        The next snapshot, or None if the line carries no recognized event
        (the caller keeps ``state``).

    Raises:
        MalformedLineError: The line was recognized but a count is unusable.
    """
    transition = step(line, state)
    return None if transition is None else transition.state


class Engine:
    """Classifier and mutator bundled for callers with custom tables."""

    def __init__(
        self,
        classifier: Optional[LineClassifier] = None,
        mutator: Optional[StateMutator] = None,
    ) -> None:
        self.classifier = classifier or LineClassifier()
        self.mutator = mutator or StateMutator()

    def step(self, line: str, state: MatchState) -> Optional[Transition]:
        event = self.classifier.classify(line, state.is_initialized, state.player_names)
        if event is None:
            return None
        return self.mutator.apply_event(state, event)

    def parse_line(self, line: str, state: MatchState) -> Optional[MatchState]:
        transition = self.step(line, state)
        return None if transition is None else transition.state
