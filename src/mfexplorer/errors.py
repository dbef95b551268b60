"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    PARSE_ERROR = 5
    NOT_FOUND = 6
    VALIDATION_ERROR = 7


@dataclass
class MFExplorerError(Exception):
    message: str
    code: ExitCode = ExitCode.RUNTIME_ERROR
    hint: str = ""

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


@dataclass
class ParseError(MFExplorerError):
    """Config source is not syntactically valid JavaScript/TypeScript."""

    code: ExitCode = ExitCode.PARSE_ERROR
    path: str = ""


@dataclass
class MissingCommandError(MFExplorerError):
    """A process start was requested without a resolved start command."""

    code: ExitCode = ExitCode.VALIDATION_ERROR
    key: str = ""


@dataclass
class NotFoundError(MFExplorerError):
    """Registry or lifecycle operation referenced an unknown root/remote."""

    code: ExitCode = ExitCode.NOT_FOUND
    subject: str = ""


@dataclass(frozen=True)
class ResolutionAmbiguity:
    """Informational marker attached to partial results; never raised.

    ``kind`` is one of ``multi-hop``, ``unresolved``, ``non-literal`` or
    ``duplicate-remote``.
    """

    kind: str
    subject: str
    detail: str = ""

    def __str__(self) -> str:
        if self.detail:
            return f"{self.kind}: {self.subject} ({self.detail})"
        return f"{self.kind}: {self.subject}"


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
