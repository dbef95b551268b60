"""Start/stop state machine for locally spawned host and remote processes."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Callable, Collection
from dataclasses import dataclass

from mfexplorer.errors import ExitCode, MFExplorerError, MissingCommandError
from mfexplorer.federation.models import RootConfig
from mfexplorer.terminal.backend import Session, SessionBackend
from mfexplorer.terminal.models import (
    LaunchSpec,
    ProcessHandle,
    ProcessKey,
    ProcessState,
)

logger = py_logging.getLogger(__name__)

LaunchResolver = Callable[[ProcessKey], LaunchSpec]

_TRANSITIONS: dict[ProcessState, set[ProcessState]] = {
    ProcessState.IDLE: {ProcessState.STARTING},
    ProcessState.STARTING: {ProcessState.RUNNING, ProcessState.STOPPING, ProcessState.IDLE},
    ProcessState.RUNNING: {ProcessState.STOPPING},
    ProcessState.STOPPING: {ProcessState.IDLE},
}


@dataclass(frozen=True)
class ProcessEvent:
    key: str
    step: str
    message: str


class ProcessLifecycleManager:
    """Tracks at most one live session per process key.

    ``running`` means a session was opened and the commands were sent to it;
    the manager never checks exit codes or port readiness.
    """

    def __init__(
        self,
        resolver: LaunchResolver,
        *,
        backend: SessionBackend | None = None,
    ) -> None:
        self._resolver = resolver
        self._backend = backend or SessionBackend()
        self._handles: dict[ProcessKey, ProcessHandle] = {}
        self._events: list[ProcessEvent] = []

    def state(self, key: ProcessKey) -> ProcessState:
        handle = self._handles.get(key)
        return handle.state if handle is not None else ProcessState.IDLE

    def handle(self, key: ProcessKey) -> ProcessHandle | None:
        return self._handles.get(key)

    def is_running(self, key: ProcessKey) -> bool:
        return self.state(key) in {ProcessState.STARTING, ProcessState.RUNNING}

    def list_handles(self) -> list[ProcessHandle]:
        return sorted(self._handles.values(), key=lambda item: str(item.key))

    def list_events(self) -> list[ProcessEvent]:
        return list(self._events)

    def clear_events(self) -> None:
        self._events.clear()

    def start(self, key: ProcessKey) -> ProcessHandle:
        existing = self._handles.get(key)
        if existing is not None and existing.state in {ProcessState.STARTING, ProcessState.RUNNING}:
            self._record(key, "start-skip", "Process is already running.")
            return existing

        launch = self._resolver(key)
        if not launch.start_command:
            raise MissingCommandError(
                f"No start command configured for {key}",
                hint="Configure a start command before starting the process.",
                key=str(key),
            )

        handle = ProcessHandle(key=key, launch=launch)
        self._handles[key] = handle
        self._transition(handle, ProcessState.STARTING)
        try:
            handle.session = self._backend.open(
                str(key),
                cwd=launch.cwd,
                on_dispose=lambda session: self._on_session_disposed(key, session),
            )
            for command in (launch.build_command, launch.start_command):
                if command:
                    handle.session.send_text(command)
                    self._record(key, "send", command)
        except Exception as exc:
            del self._handles[key]
            if handle.session is not None:
                handle.session.dispose()
                handle.session = None
            self._transition(handle, ProcessState.IDLE)
            self._record(key, "start-failed", str(exc) or "Session start failed.")
            if isinstance(exc, MFExplorerError):
                raise
            raise MFExplorerError(
                f"Failed to start {key}.",
                code=ExitCode.RUNTIME_ERROR,
                hint=str(exc) or "Inspect the lifecycle logs and retry.",
            ) from exc

        self._transition(handle, ProcessState.RUNNING)
        return handle

    def stop(self, key: ProcessKey) -> None:
        handle = self._handles.get(key)
        if handle is None or handle.state == ProcessState.IDLE:
            logger.debug("Stop ignored for idle process key=%s", key)
            return
        if handle.state == ProcessState.STOPPING:
            return
        self._transition(handle, ProcessState.STOPPING)
        session, handle.session = handle.session, None
        if session is not None and not session.dispose():
            self._record(key, "stop", "Session was already closed.")
        self._transition(handle, ProcessState.IDLE)
        self._handles.pop(key, None)

    def clear_all(self) -> None:
        for key in list(self._handles):
            self.stop(key)

    def release_root(self, config: RootConfig, *, still_declared: Collection[str] = ()) -> None:
        """Stop processes owned by a removed root.

        Remote processes are kept when another root still declares the remote.
        """
        self.stop(ProcessKey.for_root(config.path))
        for name in config.remotes:
            if name not in still_declared:
                self.stop(ProcessKey.for_remote(name))

    def poll(self) -> list[ProcessKey]:
        """Detect sessions closed outside the manager and mark them idle."""
        tracked = list(self._handles)
        closed = set(self._backend.poll())
        return [key for key in tracked if str(key) in closed]

    def _on_session_disposed(self, key: ProcessKey, session: Session) -> None:
        handle = self._handles.get(key)
        if handle is None or handle.session is not session:
            return
        if handle.state != ProcessState.RUNNING:
            return
        self._record(key, "closed", "Session closed outside the lifecycle manager.")
        handle.session = None
        self._transition(handle, ProcessState.STOPPING)
        self._transition(handle, ProcessState.IDLE)
        del self._handles[key]

    def _transition(self, handle: ProcessHandle, target: ProcessState) -> None:
        if target not in _TRANSITIONS[handle.state]:
            raise MFExplorerError(
                f"Invalid process transition {handle.state.value} -> {target.value} for {handle.key}",
                code=ExitCode.RUNTIME_ERROR,
            )
        handle.state = target
        self._record(handle.key, target.value, f"Process is {target.value}.")

    def _record(self, key: ProcessKey, step: str, message: str) -> None:
        self._events.append(ProcessEvent(key=str(key), step=step, message=message))
        logger.info("runtime-event key=%s step=%s message=%s", key, step, message)
