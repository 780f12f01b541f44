"""Exceptions raised by forgestate."""

from typing import Optional


class ForgeStateError(Exception):
    """Base class for forgestate errors."""


class MalformedLineError(ForgeStateError, ValueError):
    """A grammar matched a line but one of its numeric fields is unusable.

    This is not the same as a line that matches nothing: the line was
    recognized, so dropping it silently would lose a real game event.
    """

    def __init__(
        self,
        line: str,
        field: str,
        value: str,
        kind: Optional[str] = None,
    ) -> None:
        self.line = line
        self.field = field
        self.value = value
        self.kind = kind
        label = f"{kind} " if kind else ""
        super().__init__(
            f"Malformed {label}line: field {field!r} is not a valid count: {value!r}"
        )
