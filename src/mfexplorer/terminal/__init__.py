"""Process lifecycle domain package."""

from .backend import Session, SessionBackend, build_shell_command
from .lifecycle import ProcessEvent, ProcessLifecycleManager
from .models import LaunchSpec, ProcessHandle, ProcessKey, ProcessKind, ProcessState

__all__ = [
    "build_shell_command",
    "LaunchSpec",
    "ProcessEvent",
    "ProcessHandle",
    "ProcessKey",
    "ProcessKind",
    "ProcessLifecycleManager",
    "ProcessState",
    "Session",
    "SessionBackend",
]
