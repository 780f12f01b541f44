"""Match session: owns the current snapshot for one simulated match.

The session sits between a line source (a tailed log file, a subprocess
pipe) and whatever broadcasts or stores snapshots. It buffers partial lines
across chunks, feeds complete lines to the engine, and hands each new
snapshot to the registered callbacks as an envelope:

    {"type": "STATE_UPDATE", "matchId": ..., "sequence": 3, "state": {...}}
    {"type": "SIMULATION_COMPLETE", "matchId": ..., "sequence": 3, "finalState": {...}}
"""

import logging
from collections import deque
from typing import Any, Callable, Optional

from forgestate.engine import Engine
from forgestate.errors import MalformedLineError
from forgestate.events import DamageToPlayer, Event
from forgestate.model import MatchOutcome, MatchState, MatchPhase, initial_state

logger = logging.getLogger(__name__)

STATE_UPDATE = "STATE_UPDATE"
SIMULATION_COMPLETE = "SIMULATION_COMPLETE"

Envelope = dict[str, Any]


def state_update_envelope(
    state: MatchState,
    match_id: Optional[str] = None,
    sequence: int = 0,
) -> Envelope:
    return {
        "type": STATE_UPDATE,
        "matchId": match_id,
        "sequence": sequence,
        "state": state.to_dict(),
    }


def simulation_complete_envelope(
    state: MatchState,
    match_id: Optional[str] = None,
    sequence: int = 0,
) -> Envelope:
    return {
        "type": SIMULATION_COMPLETE,
        "matchId": match_id,
        "sequence": sequence,
        "finalState": state.to_dict(),
    }


class MatchSession:
    """Incremental reconstruction of one match from log text.

    Example:
        session = MatchSession(match_id="42", on_update=broadcast)
        for chunk in stream:
            session.process_chunk(chunk)
        final = session.finish()
    """

    def __init__(
        self,
        match_id: Optional[str] = None,
        on_update: Optional[Callable[[Envelope], None]] = None,
        on_complete: Optional[Callable[[Envelope], None]] = None,
        engine: Optional[Engine] = None,
        max_malformed: int = 100,
    ) -> None:
        """Initialize the session.

        Args:
            match_id: Identifier copied into every envelope.
            on_update: Called with a STATE_UPDATE envelope per new snapshot.
            on_complete: Called once with the SIMULATION_COMPLETE envelope.
            engine: Classifier/mutator pair; defaults to the standard tables.
            max_malformed: How many malformed lines to keep for inspection.
        """
        self.match_id = match_id
        self._on_update = on_update
        self._on_complete = on_complete
        self._engine = engine or Engine()

        self._state: MatchState = initial_state()
        self._sequence: int = 0
        self._pending_line: str = ""  # Incomplete line from previous chunk
        self._finished: bool = False

        self.malformed_lines: deque[MalformedLineError] = deque(maxlen=max_malformed)
        self.reference_misses: int = 0

    @property
    def state(self) -> MatchState:
        """Latest snapshot. Safe to hand to other threads."""
        return self._state

    @property
    def sequence(self) -> int:
        """Number of STATE_UPDATE envelopes produced so far."""
        return self._sequence

    @property
    def finished(self) -> bool:
        return self._finished

    def process_chunk(self, text: str) -> None:
        """Process a chunk of log text.

        Handles partial lines at chunk boundaries by buffering incomplete lines.

        Args:
            text: Raw text chunk from the log stream.
        """
        if self._pending_line:
            text = self._pending_line + text
            self._pending_line = ""

        lines = text.split("\n")

        # If text doesn't end with newline, last "line" is incomplete
        if text and not text.endswith("\n"):
            self._pending_line = lines[-1]
            lines = lines[:-1]

        for line in lines:
            self.process_line(line)

    def process_line(self, line: str) -> Optional[MatchState]:
        """Apply a single complete line.

        Returns:
            The resulting snapshot (the prior one on a reference miss), or
            None if the line was not recognized or was malformed.
        """
        line = line.strip()
        if not line:
            return None

        try:
            transition = self._engine.step(line, self._state)
        except MalformedLineError as e:
            logger.warning(f"{e}")
            logger.debug(f"Malformed line content: {line[:500]}")
            self.malformed_lines.append(e)
            return None

        if transition is None:
            return None

        if transition.miss:
            self.reference_misses += 1
            logger.debug(f"Unresolved reference ({transition.miss}): {line[:200]}")

        previous = self._state
        self._state = transition.state
        self._sequence += 1
        self._log_combat_damage(transition.event)
        self._log_milestones(previous, self._state)
        self._emit(self._on_update, state_update_envelope(
            self._state, self.match_id, self._sequence
        ))
        return self._state

    def finish(self) -> MatchState:
        """Flush any buffered partial line and emit the completion envelope.

        Call once the line source has ended. Further calls are no-ops.
        """
        if self._finished:
            return self._state

        if self._pending_line:
            pending, self._pending_line = self._pending_line, ""
            self.process_line(pending)

        self._finished = True
        state = self._state
        if state.outcome is MatchOutcome.AMBIGUOUS:
            logger.warning(
                f"Match {self.match_id} ended without a clear winner: "
                + ", ".join(f"{p.name}={p.life}" for p in state.players.values())
            )
        elif state.phase is not MatchPhase.TERMINAL:
            logger.info(f"Match {self.match_id} stream ended before a game result")
        logger.info(
            f"Match {self.match_id} complete after {self._sequence} updates "
            f"(outcome={state.outcome.value}, winner={state.winner_name})"
        )
        self._emit(self._on_complete, simulation_complete_envelope(
            state, self.match_id, self._sequence
        ))
        return state

    def _log_combat_damage(self, event: Optional[Event]) -> None:
        if isinstance(event, DamageToPlayer) and event.combat:
            logger.debug(
                f"Combat damage: {event.source_name} ({event.source_id}) dealt "
                f"{event.damage} to {event.target_player}"
            )

    def _log_milestones(self, previous: MatchState, current: MatchState) -> None:
        if not previous.is_initialized and current.is_initialized:
            logger.info(f"Players initialized: {' vs '.join(current.player_names)}")
        if current.turn != previous.turn:
            logger.debug(f"Turn {current.turn} ({current.active_player_name})")
        if current.outcome is not previous.outcome:
            logger.info(
                f"Game over: outcome={current.outcome.value}, "
                f"winner={current.winner_name}"
            )

    def _emit(
        self,
        callback: Optional[Callable[[Envelope], None]],
        envelope: Envelope,
    ) -> None:
        if callback is None:
            return
        try:
            callback(envelope)
        except Exception as e:
            logger.error(f"{envelope['type']} callback error: {e}")
