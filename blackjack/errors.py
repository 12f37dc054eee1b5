from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Stable error identifiers exposed to clients.

    Callers branch on these values, never on the human-readable message.
    """

    invalid_user = "InvalidUser"
    invalid_game = "InvalidGame"
    store_error = "StoreError"
    not_found = "NotFound"
    version_conflict = "VersionConflict"
    invalid_event = "InvalidEvent"


class SessionError(Exception):
    kind: ErrorKind = ErrorKind.store_error

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.kind.value)


class InvalidUser(SessionError):
    """No session matches the given identity/connection filter."""

    kind = ErrorKind.invalid_user


class InvalidGame(SessionError):
    """The session exists but has not joined a game."""

    kind = ErrorKind.invalid_game


class StoreError(SessionError):
    """The underlying store failed (connectivity, constraint violation, bad document)."""

    kind = ErrorKind.store_error


class NotFound(SessionError):
    """An update/delete targeted no matching record."""

    kind = ErrorKind.not_found


class VersionConflict(SessionError):
    """A compare-and-swap update saw a different version than expected."""

    kind = ErrorKind.version_conflict


class InvalidEvent(SessionError):
    kind = ErrorKind.invalid_event
