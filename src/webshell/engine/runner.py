"""Process runner for the command endpoint.

Runs a shell command line and returns its combined stdout/stderr text.
Hosts differ in which process-spawning primitives they allow, so the
runner walks an ordered table of execution strategies and uses the
first one whose primitives are all usable.
"""

from __future__ import annotations

import importlib
import logging
import os
import signal
import subprocess
import tempfile
import threading
from typing import Callable, Iterable, NamedTuple

from webshell.config.settings import RunnerConfig

try:
    import resource
except ImportError:  # Windows
    resource = None

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class Strategy(NamedTuple):
    """One way of spawning a process, tagged with the primitives it needs."""

    name: str
    requires: tuple[str, ...]
    execute: Callable[[str, str | None, float | None], bytes]
    supports_timeout: bool


# ---------------------------------------------------------------------------
# Strategy implementations
# ---------------------------------------------------------------------------

# Each command gets its own process group so a timeout can take down the
# whole tree, not just the shell.
if os.name == "nt":
    _NEW_GROUP: dict[str, object] = {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
else:
    _NEW_GROUP = {"start_new_session": True}

# os.popen cannot target a directory, so it borrows the process one.
_chdir_lock = threading.Lock()


def kill_process_group(proc: subprocess.Popen) -> None:
    """Kill ``proc`` together with every process it started."""
    if proc.returncode is not None:
        return
    if os.name == "nt":
        subprocess.run(
            ["taskkill", "/F", "/T", "/PID", str(proc.pid)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass  # Already gone


def _exec_communicate(cmd: str, cwd: str | None, timeout: float | None) -> bytes:
    proc = subprocess.Popen(
        cmd,
        shell=True,
        cwd=cwd,
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        **_NEW_GROUP,
    )
    with proc:
        try:
            output, _ = proc.communicate(input=b"", timeout=timeout)
        except subprocess.TimeoutExpired:
            kill_process_group(proc)
            proc.communicate()
            raise
    return output or b""


def _exec_lines(cmd: str, cwd: str | None, timeout: float | None) -> bytes:
    lines: list[bytes] = []
    proc = subprocess.Popen(
        cmd,
        shell=True,
        cwd=cwd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        **_NEW_GROUP,
    )
    expired = threading.Event()

    def expire() -> None:
        expired.set()
        kill_process_group(proc)

    watchdog = threading.Timer(timeout, expire) if timeout is not None else None
    with proc:
        if watchdog is not None:
            watchdog.start()
        try:
            for line in proc.stdout:
                lines.append(line)
            proc.wait()
        finally:
            if watchdog is not None:
                watchdog.cancel()
    if expired.is_set():
        raise subprocess.TimeoutExpired(cmd, timeout, output=b"".join(lines))
    return b"".join(lines)


def _exec_run(cmd: str, cwd: str | None, _timeout: float | None) -> bytes:
    completed = subprocess.run(
        cmd,
        shell=True,
        cwd=cwd,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        **_NEW_GROUP,
    )
    return completed.stdout or b""


def _exec_buffer(cmd: str, cwd: str | None, _timeout: float | None) -> bytes:
    with tempfile.TemporaryFile() as buffer:
        subprocess.call(
            cmd,
            shell=True,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=buffer,
            stderr=subprocess.STDOUT,
            **_NEW_GROUP,
        )
        buffer.seek(0)
        return buffer.read()


def _exec_popen(cmd: str, cwd: str | None, _timeout: float | None) -> bytes:
    with _chdir_lock:
        previous = os.getcwd()
        if cwd is not None:
            os.chdir(cwd)
        try:
            stream = os.popen(cmd, "r")
        finally:
            os.chdir(previous)
    chunks: list[bytes] = []
    with stream:
        while True:
            chunk = stream.buffer.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


# Most capable first. subprocess.run and subprocess.call would kill only the
# shell on timeout, so the ceiling belongs to strategies holding a handle.
STRATEGIES: tuple[Strategy, ...] = (
    Strategy(
        "communicate",
        ("subprocess.Popen", "subprocess.Popen.communicate"),
        _exec_communicate,
        True,
    ),
    Strategy("lines", ("subprocess.Popen", "subprocess.Popen.wait"), _exec_lines, True),
    Strategy("run", ("subprocess.run",), _exec_run, False),
    Strategy("buffer", ("subprocess.call", "tempfile.TemporaryFile"), _exec_buffer, False),
    Strategy("popen", ("os.popen",), _exec_popen, False),
)


# ---------------------------------------------------------------------------
# Host preparation
# ---------------------------------------------------------------------------

_memory_lock = threading.Lock()
_memory_relaxed = False


def relax_memory_limit() -> bool:
    """Raise the address-space soft limit to the hard limit, once per process.

    Returns True if the limit was (or had already been) relaxed, False
    when the host exposes no such control.
    """
    global _memory_relaxed
    with _memory_lock:
        if _memory_relaxed:
            return True
        if resource is None or not hasattr(resource, "RLIMIT_AS"):
            logger.debug("No address-space limit control on this host, skipping")
            return False
        try:
            soft, hard = resource.getrlimit(resource.RLIMIT_AS)
            if soft != hard:
                resource.setrlimit(resource.RLIMIT_AS, (hard, hard))
                logger.debug("Raised RLIMIT_AS soft limit from %s to %s", soft, hard)
        except (ValueError, OSError) as e:
            logger.debug("Could not relax memory limit: %s", e)
            return False
        _memory_relaxed = True
        return True


def resolve_primitive(name: str) -> object | None:
    """Resolve a dotted name like ``subprocess.Popen.wait`` to an object.

    Returns None if any component is missing.
    """
    parts = name.split(".")
    for split in range(len(parts) - 1, 0, -1):
        try:
            target: object = importlib.import_module(".".join(parts[:split]))
        except ImportError:
            continue
        for attr in parts[split:]:
            target = getattr(target, attr, None)
            if target is None:
                return None
        return target
    return None


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class Runner:
    """Executes shell command lines through the best available strategy.

    The strategy is probed on first use and cached. The probe is
    idempotent, so concurrent first calls at worst probe twice and
    agree on the result.
    """

    def __init__(
        self,
        disabled_primitives: Iterable[str] = (),
        time_limit: float | None = 300.0,
        relax_memory: bool = True,
        encoding: str = "utf-8",
        errors: str = "replace",
        strategies: Iterable[Strategy] = STRATEGIES,
    ) -> None:
        self._disabled = frozenset(disabled_primitives)
        self._time_limit = time_limit
        self._relax_memory = relax_memory
        self._encoding = encoding
        self._errors = errors
        self._strategies = tuple(strategies)
        self._selected: Strategy | None = None

    @classmethod
    def from_config(cls, config: RunnerConfig) -> Runner:
        return cls(
            disabled_primitives=config.disabled_primitives,
            time_limit=config.time_limit,
            relax_memory=config.relax_memory_limit,
            encoding=config.encoding,
            errors=config.errors,
        )

    @property
    def time_limit(self) -> float | None:
        return self._time_limit

    def is_available(self, primitive: str) -> bool:
        """Whether a primitive is permitted on this host and callable."""
        if primitive in self._disabled:
            return False
        return callable(resolve_primitive(primitive))

    @property
    def strategy(self) -> Strategy:
        """The selected strategy. Raises ExecutionUnavailable if none fits."""
        if self._selected is None:
            for strategy in self._strategies:
                if all(self.is_available(p) for p in strategy.requires):
                    logger.info("Using '%s' execution strategy", strategy.name)
                    self._selected = strategy
                    break
            else:
                raise ExecutionUnavailable(
                    "No process execution primitive is available on this host"
                )
        return self._selected

    def run(self, cmd: str, cwd: str | None = None) -> str:
        """Run ``cmd`` through the shell and return merged output text.

        Args:
            cmd: Shell command line, executed verbatim.
            cwd: Directory to start the process in. None uses the
                 process's own working directory.

        Raises:
            ExecutionUnavailable: No strategy is usable on this host.
            ExecutionTimeout: The time ceiling expired.
            RunnerError: The process could not be started.
        """
        strategy = self.strategy
        if self._relax_memory:
            relax_memory_limit()
        timeout = self._time_limit if strategy.supports_timeout else None
        if self._time_limit is not None and timeout is None:
            logger.debug("Strategy '%s' cannot enforce a time ceiling", strategy.name)

        merged = f"{cmd} 2>&1"
        logger.debug("Running via %s in %s: %s", strategy.name, cwd or ".", cmd)
        try:
            raw = strategy.execute(merged, cwd, timeout)
        except subprocess.TimeoutExpired as e:
            raise ExecutionTimeout(
                f"Command exceeded the {self._time_limit:g}s time ceiling"
            ) from e
        except OSError as e:
            raise RunnerError(f"Failed to start process: {e}") from e
        return raw.decode(self._encoding, errors=self._errors)


class RunnerError(Exception):
    """Raised when a command cannot be run."""


class ExecutionUnavailable(RunnerError):
    """Raised when no execution strategy is usable on the host."""


class ExecutionTimeout(RunnerError):
    """Raised when a command outlives the configured time ceiling."""
