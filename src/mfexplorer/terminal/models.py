"""Process lifecycle domain models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mfexplorer.terminal.backend import Session


class ProcessKind(str, Enum):
    ROOT = "root"
    REMOTE = "remote"


class ProcessState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(frozen=True)
class ProcessKey:
    kind: ProcessKind
    name: str

    @classmethod
    def for_root(cls, path: str) -> ProcessKey:
        return cls(ProcessKind.ROOT, path)

    @classmethod
    def for_remote(cls, name: str) -> ProcessKey:
        return cls(ProcessKind.REMOTE, name)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.name}"


@dataclass(frozen=True)
class LaunchSpec:
    title: str
    cwd: str | None = None
    build_command: str | None = None
    start_command: str | None = None


@dataclass
class ProcessHandle:
    key: ProcessKey
    launch: LaunchSpec
    state: ProcessState = ProcessState.IDLE
    session: Session | None = None
