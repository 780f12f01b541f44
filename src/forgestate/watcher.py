"""Forge simulation log watcher using watchdog.

This module tails a log file that a `forge sim` process is writing (for
example its stdout redirected to disk), delivering new content via callback
as it's written.
"""

import logging
import os
import re
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileCreatedEvent, FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

from forgestate.settings import get_settings

logger = logging.getLogger(__name__)

# The "Ai(1)-DeckA (AI: X) vs Ai(2)-DeckB (AI: Y) - 1 game of Constructed" header
MATCH_START_PATTERN = re.compile(r"Ai\(\d+\)-\S.* vs Ai\(\d+\)-\S")

DEFAULT_LOG_PATH = os.path.join(os.getcwd(), "forge-sim.log")

# Scan at most this much of the file tail when looking for the match header
MAX_SCAN_BYTES = 15 * 1024 * 1024


def resolve_log_path(log_path: Optional[str] = None) -> Path:
    """Pick the log path: argument, then FORGESTATE_LOG_PATH, then settings."""
    if log_path is None:
        log_path = get_settings().get("log_path", DEFAULT_LOG_PATH)
    return Path(log_path).resolve()


class SimulationLogHandler(FileSystemEventHandler):
    """FileSystemEventHandler that tracks file position for incremental reads."""

    def __init__(self, log_path: str, callback: Callable[[str], None]) -> None:
        """Initialize the handler.

        Args:
            log_path: Path to the simulation log file.
            callback: Function called with new log content as it's written.
        """
        super().__init__()
        self.log_path = Path(log_path).resolve()
        self.callback = callback
        self.file_position: int = 0
        # Serializes reads from the observer thread and poll()
        self._lock = threading.Lock()

        # Initialize position to end of file if it exists
        if self.log_path.exists():
            try:
                self.file_position = self.log_path.stat().st_size
                logger.debug(f"Initialized file position to {self.file_position}")
            except OSError as e:
                logger.warning(f"Could not get file size: {e}")
                self.file_position = 0

    def _is_target(self, src_path) -> bool:
        if isinstance(src_path, bytes):
            src_path = os.fsdecode(src_path)
        return Path(src_path).resolve() == self.log_path

    def on_modified(self, event: FileModifiedEvent) -> None:
        """Handle file modification events."""
        if event.is_directory or not self._is_target(event.src_path):
            return
        self._read_new_content()

    def on_created(self, event: FileCreatedEvent) -> None:
        """Handle file creation events (a new simulation run replaced the log)."""
        if event.is_directory or not self._is_target(event.src_path):
            return

        logger.info("Log file recreated, resetting position to 0")
        with self._lock:
            self.file_position = 0
            self._read_locked()

    def _read_new_content(self) -> None:
        """Read new content from the log file and invoke callback."""
        with self._lock:
            self._read_locked()

    def _read_locked(self) -> None:
        try:
            with open(self.log_path, "r", encoding="utf-8", errors="replace") as f:
                f.seek(0, 2)
                file_size = f.tell()

                if file_size < self.file_position:
                    logger.info(
                        f"File truncated (size {file_size} < position {self.file_position}), resetting"
                    )
                    self.file_position = 0

                f.seek(self.file_position)
                new_content = f.read()

                if new_content:
                    self.file_position = f.tell()
                    logger.debug(f"Read {len(new_content)} chars, new position: {self.file_position}")
                    self.callback(new_content)

        except FileNotFoundError:
            logger.debug("Log file not found (simulation may not have started)")
        except PermissionError as e:
            logger.debug(f"Permission error reading log: {e}")
        except OSError as e:
            logger.warning(f"Error reading log file: {e}")

    def read_from_position(self, start_position: int) -> None:
        """Read content from a specific position and invoke callback.

        Used for backfilling existing log content on startup.
        """
        with self._lock:
            self._backfill_locked(start_position)

    def _backfill_locked(self, start_position: int) -> None:
        try:
            with open(self.log_path, "r", encoding="utf-8", errors="replace") as f:
                f.seek(start_position)
                content = f.read()
                self.file_position = f.tell()

                if content:
                    logger.info(f"Backfill: read {len(content)} chars from position {start_position}")
                    self.callback(content)

        except FileNotFoundError:
            logger.debug("Log file not found for backfill")
        except OSError as e:
            logger.warning(f"Error during backfill read: {e}")


class SimulationLogWatcher:
    """Watches a simulation log file and delivers new content via callback."""

    def __init__(
        self,
        callback: Callable[[str], None],
        log_path: Optional[str] = None,
        backfill: bool = True,
    ) -> None:
        """Initialize the log watcher.

        Args:
            callback: Function called with new log content as chunks of text.
            log_path: Path to the log. Defaults to FORGESTATE_LOG_PATH, then
                     the ``log_path`` setting, then ./forge-sim.log.
            backfill: If True, replay existing content from the last match
                     header on start(), so a match already in progress is
                     caught up. Defaults to True.
        """
        self.log_path = resolve_log_path(log_path)
        self.callback = callback
        self._backfill_enabled = backfill
        self._observer: Optional[Observer] = None
        self._handler: Optional[SimulationLogHandler] = None

        logger.info(f"SimulationLogWatcher initialized for: {self.log_path}")

    def find_last_match_start(self) -> int:
        """Find the byte position of the last match header in the log file.

        Returns:
            Byte position to start reading from. Without a header in the
            scanned tail, the start of the scan window.
        """
        if not self.log_path.exists():
            return 0

        try:
            file_size = self.log_path.stat().st_size
            read_size = min(file_size, MAX_SCAN_BYTES)
            start_offset = max(0, file_size - read_size)

            if read_size == 0:
                return 0

            with open(self.log_path, "rb") as f:
                f.seek(start_offset)
                content_bytes = f.read(read_size)

            content = content_bytes.decode("utf-8", errors="replace")

            last_char_pos = -1
            for match in MATCH_START_PATTERN.finditer(content):
                line_start = content.rfind("\n", 0, match.start())
                last_char_pos = line_start + 1 if line_start != -1 else 0

            if last_char_pos < 0:
                logger.info("No match header found, reading from the start of the scan window")
                return start_offset

            relative_byte_pos = len(content[:last_char_pos].encode("utf-8"))
            final_pos = start_offset + relative_byte_pos
            logger.info(f"Found last match header at byte position {final_pos}")
            return final_pos

        except OSError as e:
            logger.warning(f"Error scanning log for match header: {e}")
            return 0

    def start(self) -> None:
        """Start watching the log file.

        Creates a watchdog Observer on the directory containing the log. If
        backfill is enabled, first processes existing content from the last
        match header.
        """
        if self._observer is not None:
            logger.warning("Watcher already started")
            return

        watch_dir = self.log_path.parent
        if not watch_dir.exists():
            logger.warning(f"Watch directory does not exist: {watch_dir}")

        self._handler = SimulationLogHandler(str(self.log_path), self.callback)

        if self._backfill_enabled and self.log_path.exists():
            start_pos = self.find_last_match_start()
            self._handler.read_from_position(start_pos)

        self._observer = Observer()
        # watchdog watches directories, not files
        self._observer.schedule(self._handler, str(watch_dir), recursive=False)
        self._observer.start()

        logger.info(f"Started watching: {watch_dir}")

    def stop(self) -> None:
        """Stop watching the log file and clean up resources."""
        if self._observer is None:
            logger.debug("Watcher not running")
            return

        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self._handler = None

        logger.info("Watcher stopped")

    @property
    def file_position(self) -> int:
        """Current byte position in the log file."""
        if self._handler:
            return self._handler.file_position
        return 0

    def poll(self) -> None:
        """Manually poll for new log content.

        Call this periodically as a backup when watchdog events are missed.
        Safe to call even if watcher isn't running.
        """
        if self._handler:
            self._handler._read_new_content()

    def __enter__(self) -> "SimulationLogWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
