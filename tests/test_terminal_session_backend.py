from __future__ import annotations

import pytest

from mfexplorer.errors import MFExplorerError
from mfexplorer.terminal import SessionBackend, build_shell_command


class _FakeShell:
    def __init__(self, *, sticky_alive: bool = False) -> None:
        self.writes: list[str] = []
        self.closed = False
        self.terminated = False
        self.sticky_alive = sticky_alive

    def write(self, payload: str) -> None:
        self.writes.append(payload)

    def close(self) -> None:
        self.closed = True

    def terminate(self) -> None:
        self.terminated = True

    def isalive(self) -> bool:
        if self.sticky_alive:
            return not self.terminated
        return not self.closed


def test_build_shell_command_prefers_configured_shell(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("mfexplorer.terminal.backend.os.name", "posix")
    monkeypatch.setenv("SHELL", "/bin/zsh")

    assert build_shell_command("/bin/bash -l") == ["/bin/bash", "-l"]
    assert build_shell_command("") == ["/bin/zsh"]

    monkeypatch.delenv("SHELL")
    assert build_shell_command() == ["/bin/sh"]


def test_backend_opens_sessions_in_requested_folder() -> None:
    seen: list[tuple[list[str], str | None]] = []

    def spawn(command: list[str], cwd: str | None, _env: dict[str, str] | None) -> _FakeShell:
        seen.append((command, cwd))
        return _FakeShell()

    backend = SessionBackend(spawn=spawn, shell="/bin/bash")
    backend.open("root:/ws/host", cwd="/ws/host")
    backend.open("remote:cart", cwd="/ws/cart")

    assert seen == [(["/bin/bash"], "/ws/host"), (["/bin/bash"], "/ws/cart")]
    assert [session.key for session in backend.list_sessions()] == ["remote:cart", "root:/ws/host"]


def test_send_text_appends_newline_once() -> None:
    shell = _FakeShell()
    backend = SessionBackend(spawn=lambda _c, _cwd, _env: shell, shell="/bin/sh")
    session = backend.open("remote:cart")

    session.send_text("npm run build")
    session.send_text("npm run start\n")

    assert shell.writes == ["npm run build\n", "npm run start\n"]
    assert session.sent == ["npm run build", "npm run start\n"]


def test_backend_rejects_duplicate_keys_and_closed_sessions() -> None:
    backend = SessionBackend(spawn=lambda _c, _cwd, _env: _FakeShell(), shell="/bin/sh")
    session = backend.open("remote:cart")

    with pytest.raises(MFExplorerError):
        backend.open("remote:cart")

    session.dispose()
    with pytest.raises(MFExplorerError):
        session.send_text("npm start")


def test_spawn_failure_is_wrapped() -> None:
    def spawn(_command: list[str], _cwd: str | None, _env: dict[str, str] | None) -> _FakeShell:
        raise FileNotFoundError("no such shell")

    backend = SessionBackend(spawn=spawn, shell="/nope")

    with pytest.raises(MFExplorerError) as excinfo:
        backend.open("remote:cart")

    assert "no such shell" in excinfo.value.hint
    assert backend.list_sessions() == []


def test_dispose_is_idempotent_and_terminates_orphans() -> None:
    shell = _FakeShell(sticky_alive=True)
    disposed: list[str] = []
    backend = SessionBackend(spawn=lambda _c, _cwd, _env: shell, shell="/bin/sh")
    session = backend.open("root:/ws/host", on_dispose=lambda item: disposed.append(item.key))

    assert session.dispose() is True
    assert session.dispose() is False

    assert shell.closed is True
    assert shell.terminated is True
    assert disposed == ["root:/ws/host"]
    assert backend.list_sessions() == []


def test_poll_and_dispose_all() -> None:
    shells: list[_FakeShell] = []

    def spawn(_command: list[str], _cwd: str | None, _env: dict[str, str] | None) -> _FakeShell:
        shells.append(_FakeShell())
        return shells[-1]

    backend = SessionBackend(spawn=spawn, shell="/bin/sh")
    backend.open("remote:a")
    backend.open("remote:b")
    shells[0].closed = True

    assert backend.poll() == ["remote:a"]
    assert [session.key for session in backend.list_sessions()] == ["remote:b"]

    backend.dispose_all()
    assert backend.list_sessions() == []
    assert shells[1].closed is True
