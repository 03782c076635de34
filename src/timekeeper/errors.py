"""Exceptions raised by the record stores and the tracker service."""

from __future__ import annotations


class TimekeeperError(Exception):
    """Base class for application errors."""


class RecordNotFoundError(TimekeeperError, ValueError):
    """Raised when a record id does not exist in the store."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"No {kind} found for id={record_id}")
        self.kind = kind
        self.record_id = record_id


class TimerStateError(TimekeeperError):
    """Raised when a timer intent does not match the running/stopped state."""


class StoreUnavailableError(TimekeeperError):
    """Raised when the remote record store cannot be reached."""
