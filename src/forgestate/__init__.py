"""forgestate: match state reconstruction from Forge simulation logs."""

from typing import Callable, Optional

from forgestate.classifier import LineClassifier, LineGrammar, classify
from forgestate.engine import Engine, initial_state, parse_line
from forgestate.errors import ForgeStateError, MalformedLineError
from forgestate.events import Event, EventKind
from forgestate.model import (
    CardInstance,
    MatchOutcome,
    MatchPhase,
    MatchState,
    PlayerState,
)
from forgestate.mutator import StateMutator, Transition, apply
from forgestate.session import Envelope, MatchSession
from forgestate.watcher import SimulationLogWatcher

__version__ = "0.1.0"


def create_log_pipeline(
    log_path: Optional[str] = None,
    backfill: bool = True,
    match_id: Optional[str] = None,
    on_update: Optional[Callable[[Envelope], None]] = None,
    on_complete: Optional[Callable[[Envelope], None]] = None,
) -> tuple[SimulationLogWatcher, MatchSession]:
    """Create a connected watcher -> session pipeline.

    Args:
        log_path: Simulation log to follow. Defaults to FORGESTATE_LOG_PATH
                 or the ``log_path`` setting.
        backfill: If True, replay existing content from the last match
                 header when the watcher starts.
        match_id: Identifier copied into every envelope.
        on_update: Receives a STATE_UPDATE envelope per new snapshot.
        on_complete: Receives the SIMULATION_COMPLETE envelope.

    Returns:
        Tuple of (watcher, session). Start the watcher to begin processing
        and call ``session.finish()`` when the simulation process exits.

    Example:
        watcher, session = create_log_pipeline(on_update=broadcast)
        with watcher:
            wait_for_simulation()
        session.finish()
    """
    session = MatchSession(
        match_id=match_id,
        on_update=on_update,
        on_complete=on_complete,
    )
    watcher = SimulationLogWatcher(
        callback=session.process_chunk,
        log_path=log_path,
        backfill=backfill,
    )
    return watcher, session


__all__ = [
    "__version__",
    "CardInstance",
    "PlayerState",
    "MatchState",
    "MatchOutcome",
    "MatchPhase",
    "Event",
    "EventKind",
    "LineClassifier",
    "LineGrammar",
    "classify",
    "StateMutator",
    "Transition",
    "apply",
    "Engine",
    "initial_state",
    "parse_line",
    "ForgeStateError",
    "MalformedLineError",
    "MatchSession",
    "SimulationLogWatcher",
    "create_log_pipeline",
]
