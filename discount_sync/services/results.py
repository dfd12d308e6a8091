"""Explicit success/failure values returned by the sync pipeline.

Pipeline steps never raise past their own boundary; they return a
:class:`Result` instead so batch walks keep going while tests and callers can
still see *why* something failed.  A ``Result`` is truthy only on success,
which keeps ``if store(...):`` call sites readable.
"""

import dataclasses
import enum


class ErrorKind(enum.Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"


@dataclasses.dataclass(frozen=True)
class Result:
    ok: bool
    value: object = None
    error: ErrorKind = None
    message: str = ""

    def __bool__(self):
        return self.ok

    @classmethod
    def success(cls, value=None):
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error, message=""):
        return cls(ok=False, error=error, message=message)

    def raise_for_error(self):
        """Raise :class:`SyncFailed` for a failed result; no-op on success."""
        if not self.ok:
            raise SyncFailed(self.error, self.message)
        return self


class SyncFailed(Exception):
    """A failed :class:`Result` escalated at a task boundary."""

    def __init__(self, kind, message=""):
        super().__init__(message or kind.value)
        self.kind = kind

    @property
    def is_transient(self):
        return self.kind is ErrorKind.TRANSIENT
