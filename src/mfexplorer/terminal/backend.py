"""Shell-backed terminal sessions for host/remote processes."""

from __future__ import annotations

import atexit
import os
import shlex
import signal
import subprocess
from collections.abc import Callable
from contextlib import suppress

from mfexplorer.errors import ExitCode, MFExplorerError

SessionSpawn = Callable[[list[str], str | None, dict[str, str] | None], object]
DisposeCallback = Callable[["Session"], None]


def build_shell_command(shell: str = "") -> list[str]:
    if shell.strip():
        return shlex.split(shell, posix=os.name != "nt")
    if os.name == "nt":
        return ["powershell.exe", "-NoLogo", "-NoProfile"]
    return [os.environ.get("SHELL") or "/bin/sh"]


def _spawn_with_pywinpty(command: list[str], cwd: str | None, env: dict[str, str] | None) -> object:
    try:
        from winpty import PtyProcess
    except Exception as exc:
        raise MFExplorerError(
            "pywinpty backend is unavailable.",
            code=ExitCode.RUNTIME_ERROR,
            hint="Install the windows optional dependencies.",
        ) from exc

    kwargs: dict[str, object] = {}
    if cwd:
        kwargs["cwd"] = cwd
    if env:
        kwargs["env"] = env
    return PtyProcess.spawn(subprocess.list2cmdline(command), **kwargs)


class _ShellProcess:
    """Interactive shell fed through stdin, in its own process group."""

    def __init__(self, process: subprocess.Popen[str]) -> None:
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    def write(self, payload: str) -> None:
        stdin = self._process.stdin
        if stdin is None:
            raise OSError("shell stdin is not attached")
        stdin.write(payload)
        stdin.flush()

    def isalive(self) -> bool:
        return self._process.poll() is None

    def close(self) -> None:
        if self._process.stdin is not None:
            with suppress(OSError):
                self._process.stdin.close()

    def terminate(self) -> None:
        # The shell's children (dev servers) share its process group.
        with suppress(ProcessLookupError, PermissionError):
            os.killpg(self._process.pid, signal.SIGTERM)
        with suppress(subprocess.TimeoutExpired):
            self._process.wait(timeout=5)


def _spawn_with_subprocess(command: list[str], cwd: str | None, env: dict[str, str] | None) -> object:
    merged_env = {**os.environ, **env} if env else None
    process = subprocess.Popen(
        command,
        cwd=cwd or None,
        env=merged_env,
        stdin=subprocess.PIPE,
        text=True,
        start_new_session=True,
    )
    return _ShellProcess(process)


def default_spawn() -> SessionSpawn:
    if os.name == "nt":
        return _spawn_with_pywinpty
    return _spawn_with_subprocess


class Session:
    """One exclusive terminal session; released exactly once."""

    def __init__(
        self,
        key: str,
        process: object,
        command: tuple[str, ...],
        *,
        on_dispose: list[DisposeCallback] | None = None,
    ) -> None:
        self.key = key
        self.process = process
        self.command = command
        self.sent: list[str] = []
        self._disposed = False
        self._on_dispose = list(on_dispose or [])

    @property
    def disposed(self) -> bool:
        return self._disposed

    def send_text(self, text: str) -> None:
        if self._disposed:
            raise MFExplorerError(
                f"Session already closed: {self.key}",
                code=ExitCode.RUNTIME_ERROR,
                hint="Start the process again.",
            )
        payload = text if text.endswith("\n") else f"{text}\n"
        try:
            self.process.write(payload)
        except Exception as exc:
            raise MFExplorerError(
                f"Failed to send command to session {self.key}.",
                code=ExitCode.RUNTIME_ERROR,
                hint=str(exc) or "Verify the shell process is alive.",
            ) from exc
        self.sent.append(text)

    def dispose(self) -> bool:
        if self._disposed:
            return False
        self._disposed = True
        _close_process(self.process)
        for callback in self._on_dispose:
            callback(self)
        return True


class SessionBackend:
    def __init__(
        self,
        spawn: SessionSpawn | None = None,
        *,
        shell: str = "",
        env: dict[str, str] | None = None,
    ) -> None:
        self._spawn = spawn or default_spawn()
        self._shell = shell
        self._env = env
        self._sessions: dict[str, Session] = {}
        atexit.register(self.dispose_all)

    def open(
        self,
        key: str,
        *,
        cwd: str | None = None,
        on_dispose: DisposeCallback | None = None,
    ) -> Session:
        if key in self._sessions:
            raise MFExplorerError(
                f"Session already open: {key}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Stop the current session before starting a new one.",
            )

        command = build_shell_command(self._shell)
        if not command:
            raise MFExplorerError(
                "Shell command cannot be empty.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Set a shell in the mfexplorer config.",
            )

        try:
            process = self._spawn(command, cwd, self._env)
        except MFExplorerError:
            raise
        except Exception as exc:
            raise MFExplorerError(
                "Failed to start terminal session.",
                code=ExitCode.RUNTIME_ERROR,
                hint=str(exc) or "Check the shell installation.",
            ) from exc

        callbacks: list[DisposeCallback] = [self._forget]
        if on_dispose is not None:
            callbacks.append(on_dispose)
        session = Session(key, process, tuple(command), on_dispose=callbacks)
        self._sessions[key] = session
        return session

    def poll(self) -> list[str]:
        """Dispose sessions whose process exited on its own; return their keys."""
        closed: list[str] = []
        for key, session in list(self._sessions.items()):
            if not _is_alive(session.process):
                session.dispose()
                closed.append(key)
        return closed

    def dispose_all(self) -> None:
        for session in list(self._sessions.values()):
            session.dispose()

    def list_sessions(self) -> list[Session]:
        return [self._sessions[key] for key in sorted(self._sessions)]

    def _forget(self, session: Session) -> None:
        if self._sessions.get(session.key) is session:
            del self._sessions[session.key]


def _close_process(process: object) -> None:
    alive = _is_alive(process)
    if hasattr(process, "close"):
        try:
            process.close()
        except TypeError:
            process.close(True)
        except Exception:
            pass
    if alive and _is_alive(process):
        if hasattr(process, "terminate"):
            with suppress(Exception):
                process.terminate()
        elif hasattr(process, "kill"):
            with suppress(Exception):
                process.kill()


def _is_alive(process: object) -> bool:
    if hasattr(process, "isalive"):
        try:
            return bool(process.isalive())
        except Exception:
            return True
    return True
