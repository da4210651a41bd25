"""Tests for the Executor orchestration."""

from __future__ import annotations

import os
import shutil
import socket
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from webshell.domain.models import HintKind, Platform
from webshell.engine.executor import DirectoryApplyFailed, Executor
from webshell.engine.protocol import SENTINEL
from webshell.engine.runner import ExecutionUnavailable

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX shell semantics")


def probe(path: str | Path) -> str:
    return f"{SENTINEL}{path}{SENTINEL}\n"


@pytest.fixture
def executor(workspace: Path) -> Executor:
    """An executor running real commands inside the workspace."""
    return Executor(platform=Platform.UNIX, working_dir=str(workspace))


@pytest.fixture
def isolated(mock_runner: MagicMock, workspace: Path, monkeypatch: pytest.MonkeyPatch) -> Executor:
    """An executor on a mock runner with a fixed identity."""
    monkeypatch.setattr(Executor, "identity", lambda self: "user@host")
    return Executor(runner=mock_runner, platform=Platform.UNIX, working_dir=str(workspace))


# ===================================================================
# Working directory
# ===================================================================

@posix_only
class TestWorkingDirectory:
    def test_starts_in_given_directory(self, executor: Executor, workspace: Path) -> None:
        assert executor.get_working_dir() == str(workspace)

    def test_defaults_to_process_directory(self) -> None:
        assert Executor().get_working_dir() == os.path.realpath(os.getcwd())

    def test_cwd_relative(self, executor: Executor, workspace: Path) -> None:
        assert executor.cwd("ressources") is True
        assert executor.get_working_dir() == str(workspace / "ressources")

    def test_cwd_absolute(self, executor: Executor, workspace: Path) -> None:
        assert executor.cwd(str(workspace / "ressources")) is True
        assert executor.get_working_dir() == str(workspace / "ressources")

    def test_cwd_parent(self, executor: Executor, workspace: Path) -> None:
        assert executor.cwd("../") is True
        assert executor.get_working_dir() == str(workspace.parent)

    def test_cwd_resolves_symlinks(self, executor: Executor, workspace: Path) -> None:
        link = workspace / "link"
        link.symlink_to(workspace / "ressources")
        assert executor.cwd("link") is True
        assert executor.get_working_dir() == str(workspace / "ressources")

    def test_cwd_deleted_directory(self, executor: Executor, workspace: Path) -> None:
        doomed = workspace / "doomed"
        doomed.mkdir()
        shutil.rmtree(doomed)
        assert executor.cwd(str(doomed)) is False
        assert executor.get_working_dir() == str(workspace)

    def test_cwd_file_is_rejected(self, executor: Executor, workspace: Path) -> None:
        assert executor.cwd("executor_test.py") is False
        assert executor.get_working_dir() == str(workspace)

    def test_enter_raises_with_path(self, executor: Executor) -> None:
        with pytest.raises(DirectoryApplyFailed) as exc_info:
            executor.enter("missing")
        assert exc_info.value.path == "missing"


# ===================================================================
# Execution on the real host
# ===================================================================

@posix_only
class TestExecute:
    def test_echo(self, executor: Executor) -> None:
        assert executor.execute('echo "123456"').output == "123456"

    def test_silent_command_keeps_directory(self, executor: Executor, workspace: Path) -> None:
        result = executor.execute("true")
        assert result.output == ""
        assert result.working_directory == str(workspace)

    def test_empty_command(self, executor: Executor, workspace: Path) -> None:
        result = executor.execute("   ")
        assert result.output == ""
        assert result.working_directory == str(workspace)

    def test_stderr_included(self, executor: Executor) -> None:
        assert executor.execute("echo failure 1>&2").output == "failure"

    def test_sourced_script_changes_directory(self, executor: Executor, workspace: Path) -> None:
        result = executor.execute(". ressources/path_change.sh")
        assert result.output == "path change"
        assert result.working_directory == str(workspace.parent)
        assert executor.get_working_dir() == str(workspace.parent)

    def test_cd_then_failure_still_reports_directory(
        self, executor: Executor, workspace: Path
    ) -> None:
        result = executor.execute("cd ressources && false")
        assert result.output == ""
        assert result.working_directory == str(workspace / "ressources")

    def test_exit_before_probe_falls_back_to_live_directory(
        self, executor: Executor, workspace: Path
    ) -> None:
        result = executor.execute("echo bye; exit 3")
        assert result.output == "bye\n"
        assert result.working_directory == str(workspace)

    def test_trailing_comment(self, executor: Executor) -> None:
        assert executor.execute("echo hi # comment").output == "hi"

    def test_removing_own_directory_then_exiting(
        self, executor: Executor, workspace: Path
    ) -> None:
        (workspace / "doomed").mkdir()
        assert executor.cwd("doomed") is True
        result = executor.execute('rm -rf "$PWD"; exit 1')
        assert result.working_directory == str(workspace)
        assert executor.execute("pwd").output == str(workspace)

    def test_removing_own_directory(
        self, executor: Executor, workspace: Path
    ) -> None:
        (workspace / "doomed").mkdir()
        assert executor.cwd("doomed") is True
        result = executor.execute('rm -rf "$PWD"')
        assert result.working_directory == str(workspace)

    def test_identity_banner(self, executor: Executor) -> None:
        result = executor.execute("true")
        user, _, host = result.identity.partition("@")
        assert user
        assert host == socket.gethostname()


# ===================================================================
# Execution with a mock runner
# ===================================================================

class TestExecuteIsolated:
    def test_runner_failure_propagates_without_state_change(
        self, isolated: Executor, mock_runner: MagicMock, workspace: Path
    ) -> None:
        mock_runner.run.side_effect = ExecutionUnavailable("nothing usable")
        with pytest.raises(ExecutionUnavailable):
            isolated.execute("ls")
        assert isolated.get_working_dir() == str(workspace)

    def test_runs_in_working_directory(
        self, isolated: Executor, mock_runner: MagicMock, workspace: Path
    ) -> None:
        mock_runner.run.return_value = "ok\n" + probe(workspace)
        isolated.execute("ls")
        args, kwargs = mock_runner.run.call_args
        assert args[0].startswith("( ls\n")
        assert kwargs["cwd"] == str(workspace)

    def test_missing_probe_queries_pwd(
        self, isolated: Executor, mock_runner: MagicMock, workspace: Path
    ) -> None:
        target = workspace / "ressources"
        mock_runner.run.side_effect = ["Killed\n", f"{target}\n"]
        result = isolated.execute("stress")
        assert result.output == "Killed\n"
        assert result.working_directory == str(target)
        assert mock_runner.run.call_args_list[1].args[0] == "pwd"

    def test_unenterable_reported_directory_is_not_adopted(
        self, isolated: Executor, mock_runner: MagicMock, workspace: Path
    ) -> None:
        mock_runner.run.return_value = probe(workspace / "vanished")
        result = isolated.execute("rm -rf .")
        assert result.working_directory == str(workspace)

    def test_missing_probe_in_vanished_directory(
        self, mock_runner: MagicMock, workspace: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(Executor, "identity", lambda self: "user@host")
        doomed = workspace / "doomed"
        doomed.mkdir()
        executor = Executor(runner=mock_runner, platform=Platform.UNIX, working_dir=str(doomed))
        doomed.rmdir()
        mock_runner.run.side_effect = ["", f"{workspace}\n"]
        result = executor.execute("exit 1")
        assert result.working_directory == str(workspace)
        assert mock_runner.run.call_args_list[1].kwargs["cwd"] == str(workspace)


# ===================================================================
# Hinting
# ===================================================================

@posix_only
class TestHint:
    @pytest.mark.skipif(shutil.which("whoami") is None, reason="whoami not on PATH")
    def test_binary(self, executor: Executor) -> None:
        assert "whoami" in executor.hint("whoam", HintKind.BINARY)

    def test_file(self, executor: Executor) -> None:
        assert "executor_test.py" in executor.hint("executor_", HintKind.FILE)

    def test_directory_entry(self, executor: Executor) -> None:
        assert executor.hint("ress", "file") == ["ressources"]

    def test_no_match(self, executor: Executor) -> None:
        assert executor.hint("xyz_never_matches", HintKind.FILE) == []

    def test_self_entry_excluded(self, executor: Executor) -> None:
        matches = executor.hint("", HintKind.FILE)
        assert "." not in matches
        assert sorted(matches) == ["executor_test.py", "ressources"]

    def test_idempotent(self, executor: Executor) -> None:
        assert executor.hint("", HintKind.BINARY) == executor.hint("", HintKind.BINARY)

    def test_unknown_kind(self, executor: Executor) -> None:
        with pytest.raises(ValueError):
            executor.hint("x", "directory")


class TestHintIsolated:
    def test_missing_probe_yields_nothing(self, isolated: Executor, mock_runner: MagicMock) -> None:
        mock_runner.run.return_value = "find: not found\n"
        assert isolated.hint("f", HintKind.FILE) == []


# ===================================================================
# Identity
# ===================================================================

class TestIdentity:
    def test_windows_username_from_environment(
        self, mock_runner: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("USERNAME", "bob")
        executor = Executor(runner=mock_runner, platform=Platform.WINDOWS, working_dir=".")
        assert executor.get_user_name() == "bob"
        mock_runner.run.assert_not_called()

    def test_windows_whoami_strips_domain(
        self, mock_runner: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("USERNAME", raising=False)
        mock_runner.run.return_value = "CORP\\bob\r\n"
        executor = Executor(runner=mock_runner, platform=Platform.WINDOWS, working_dir=".")
        assert executor.get_user_name() == "bob"
        mock_runner.run.assert_called_once_with("whoami")

    def test_unknown_user(self, mock_runner: MagicMock, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("USERNAME", raising=False)
        mock_runner.run.return_value = ""
        executor = Executor(runner=mock_runner, platform=Platform.WINDOWS, working_dir=".")
        assert executor.get_user_name() == "NONE"

    def test_hostname_falls_back_to_command(
        self, mock_runner: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken() -> str:
            raise OSError("no hostname")

        monkeypatch.setattr(socket, "gethostname", broken)
        mock_runner.run.return_value = "box\n"
        executor = Executor(runner=mock_runner, platform=Platform.UNIX, working_dir=".")
        assert executor.get_hostname() == "box"
        mock_runner.run.assert_called_once_with("hostname")

    def test_windows_hostname_command(
        self, mock_runner: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(socket, "gethostname", lambda: "")
        mock_runner.run.return_value = "WORKGROUP\r\n"
        executor = Executor(runner=mock_runner, platform=Platform.WINDOWS, working_dir=".")
        assert executor.get_hostname() == "WORKGROUP"
        mock_runner.run.assert_called_once_with("echo %USERDOMAIN%")

    @posix_only
    def test_whoami_error_is_not_a_username(
        self, mock_runner: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        import pwd

        def no_entry(uid: int) -> None:
            raise KeyError(uid)

        monkeypatch.setattr(pwd, "getpwuid", no_entry)
        mock_runner.run.return_value = "whoami: cannot find name for user ID 12345\n"
        executor = Executor(runner=mock_runner, platform=Platform.UNIX, working_dir=".")
        assert executor.get_user_name() == "NONE"

    def test_hostname_error_is_not_a_hostname(
        self, mock_runner: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(socket, "gethostname", lambda: "")
        mock_runner.run.return_value = "sh: hostname: not found\n"
        executor = Executor(runner=mock_runner, platform=Platform.UNIX, working_dir=".")
        assert executor.get_hostname() == ""
