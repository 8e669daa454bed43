"""Error types raised while interpreting a command line.

Every failure that osh reports is a ``ShellError``. The interpreter loop
catches them, prints ``osh: <label>: <detail>`` and moves on to the next
prompt; a forked child prints the same message and exits with status 1.
"""
from __future__ import annotations

from typing import Optional


class ShellError(Exception):
    """Base class for all command-cycle failures."""

    label = "error"

    def __init__(self, detail: str = "", label: Optional[str] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if label is not None:
            self.label = label

    def __str__(self) -> str:
        if self.detail:
            return f"{self.label}: {self.detail}"
        return self.label


class OSFailure(ShellError):
    """A ShellError wrapping the OSError that caused it."""

    def __init__(self, error: OSError, subject: Optional[str] = None, label: Optional[str] = None) -> None:
        reason = error.strerror or str(error)
        detail = f"{subject}: {reason}" if subject else reason
        super().__init__(detail, label)
        self.error = error


# ---- parse-time errors ----

class LineTooLong(ShellError):
    label = "line too long"


class TooManyTokens(ShellError):
    label = "too many arguments"


class MissingRedirectTarget(ShellError):
    label = "missing redirect target"


class NoHistory(ShellError):
    label = "No command in history."


# ---- process errors ----

class OpenFailed(OSFailure):
    label = "open failed"


class PipeCreationFailed(OSFailure):
    label = "pipe failed"


class ForkFailed(OSFailure):
    label = "fork failed"


class ExecFailed(ShellError):
    label = "exec failed"

    def __init__(self, program: str, error: Exception) -> None:
        # os.execv rejects an empty argv with ValueError before reaching the OS
        reason = getattr(error, "strerror", None) or str(error)
        super().__init__(f"{program}: {reason}" if program else reason)
        self.error = error
