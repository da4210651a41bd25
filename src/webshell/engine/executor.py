"""Command executor.

Orchestrates one call on behalf of one caller: enter the caller's
stored directory, run the command wrapped with the directory probe,
recover where the shell ended up, and package the result together with
the ``user@host`` banner.

Each executor tracks its own working directory instead of changing the
process-wide one, so concurrent callers never see each other's
directory.
"""

from __future__ import annotations

import logging
import os
import socket

from webshell.domain.models import ExecutionResult, HintKind, Platform
from webshell.engine.hinting import filter_matches, listing_command
from webshell.engine.protocol import ProbeCodec
from webshell.engine.runner import Runner

logger = logging.getLogger(__name__)

WHOAMI_COMMAND = "whoami"
HOSTNAME_COMMANDS: dict[Platform, str] = {
    Platform.UNIX: "hostname",
    Platform.WINDOWS: "echo %USERDOMAIN%",
}
UNKNOWN_USER = "NONE"


def single_word(output: str) -> str:
    """Return ``output`` if it is one bare word, else an empty string."""
    words = output.split()
    return words[0] if len(words) == 1 else ""


class Executor:
    """Runs commands and hint listings for a single caller."""

    def __init__(
        self,
        runner: Runner | None = None,
        platform: Platform | None = None,
        working_dir: str | None = None,
    ) -> None:
        self._runner = runner or Runner()
        self._codec = ProbeCodec(platform)
        self._working_dir = os.path.realpath(working_dir or os.getcwd())

    @property
    def platform(self) -> Platform:
        return self._codec.platform

    @property
    def runner(self) -> Runner:
        return self._runner

    # -- working directory -------------------------------------------------

    def enter(self, path: str) -> str:
        """Change into ``path`` and return its canonical form.

        Relative paths resolve against the current working directory.

        Raises:
            DirectoryApplyFailed: ``path`` is not an enterable directory.
        """
        real = os.path.realpath(os.path.join(self._working_dir, path))
        if not os.path.isdir(real):
            raise DirectoryApplyFailed(f"Not a directory: {path}", path=path)
        if not os.access(real, os.X_OK):
            raise DirectoryApplyFailed(f"Permission denied: {path}", path=path)
        self._working_dir = real
        return real

    def cwd(self, path: str) -> bool:
        """Change into ``path``. Returns False and stays put on failure."""
        try:
            self.enter(path)
        except DirectoryApplyFailed as e:
            logger.warning("Could not enter working directory: %s", e)
            return False
        return True

    def get_working_dir(self) -> str:
        return self._working_dir

    def query_working_dir(self) -> str:
        """Ask the shell where it is, via the dedicated pwd command."""
        self._leave_vanished_directory()
        output = self._runner.run(self._codec.pwd_command, cwd=self._working_dir)
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        if not lines:
            return self._working_dir
        return lines[-1]

    def _leave_vanished_directory(self) -> None:
        """Move up to the nearest existing ancestor if the directory is gone."""
        path = self._working_dir
        while not os.path.isdir(path) and os.path.dirname(path) != path:
            path = os.path.dirname(path)
        if path != self._working_dir:
            logger.warning("Working directory %s vanished, moving to %s", self._working_dir, path)
            self._working_dir = path

    # -- execution ---------------------------------------------------------

    def execute(self, cmd: str) -> ExecutionResult:
        """Run ``cmd`` and report its output, new directory and banner.

        Raises:
            RunnerError: The command could not be run. Nothing about the
                         working directory has changed in that case.
        """
        raw = self._runner.run(self._codec.wrap_with_probe(cmd), cwd=self._working_dir)
        output, directory = self._codec.unwrap_probe(raw)
        if directory is None:
            directory = self.query_working_dir()
            logger.debug("Probe missing, live directory is %s", directory)

        if directory != self._working_dir and not self.cwd(directory):
            logger.warning(
                "Shell reported %s which cannot be entered, staying in %s",
                directory, self._working_dir,
            )
        self._leave_vanished_directory()

        return ExecutionResult(
            output=output,
            working_directory=self._working_dir,
            identity=self.identity(),
        )

    def hint(self, prefix: str, kind: HintKind | str = HintKind.BINARY) -> list[str]:
        """List completion candidates for ``prefix``."""
        kind = HintKind(kind)
        wrapped = self._codec.wrap_with_probe(listing_command(self.platform, kind))
        raw = self._runner.run(wrapped, cwd=self._working_dir)
        listing, directory = self._codec.unwrap_probe(raw)
        if directory is None:
            return []
        return filter_matches(listing, prefix, kind, self.platform)

    # -- identity ----------------------------------------------------------

    def identity(self) -> str:
        """The ``username@hostname`` banner."""
        return f"{self.get_user_name()}@{self.get_hostname()}"

    def get_user_name(self) -> str:
        if self.platform is Platform.WINDOWS:
            username = os.environ.get("USERNAME")
            if username:
                return username
        else:
            try:
                import pwd

                return pwd.getpwuid(os.geteuid()).pw_name
            except (ImportError, AttributeError, KeyError) as e:
                logger.debug("Native user lookup failed: %s", e)

        # whoami prints DOMAIN\user on Windows
        username = single_word(self._runner.run(WHOAMI_COMMAND)).split("\\")[-1]
        return username or UNKNOWN_USER

    def get_hostname(self) -> str:
        try:
            hostname = socket.gethostname()
        except OSError as e:
            logger.debug("Native hostname lookup failed: %s", e)
            hostname = ""
        if hostname:
            return hostname
        return single_word(self._runner.run(HOSTNAME_COMMANDS[self.platform]))


class DirectoryApplyFailed(Exception):
    """Raised when a stored working directory can no longer be entered."""

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path
