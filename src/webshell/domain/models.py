"""Core domain models for the webshell system.

These models represent the data flowing through a single call: the
command coming in, the captured result going out, the per-caller
session state held by the preference store, and the hinting query and
answer. All models use Pydantic v2.
"""

from __future__ import annotations

import enum
import os
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Platform(str, enum.Enum):
    """Host shell family. Selects trailer syntax and listing commands."""

    UNIX = "unix"
    WINDOWS = "windows"

    @classmethod
    def current(cls) -> Platform:
        return cls.WINDOWS if os.name == "nt" else cls.UNIX

    @property
    def line_separator(self) -> str:
        return "\r\n" if self is Platform.WINDOWS else "\n"


class HintKind(str, enum.Enum):
    """What a hint query completes against."""

    BINARY = "binary"  # Executables reachable on the search path
    FILE = "file"  # Entries of the current directory


# ---------------------------------------------------------------------------
# Execution Models
# ---------------------------------------------------------------------------


class ExecutionRequest(BaseModel):
    """A single command line submitted by the caller."""

    command: str = Field(description="Shell command line, passed verbatim")


class ExecutionResult(BaseModel):
    """Outcome of one executed command.

    ``output`` is the merged stdout/stderr text with the directory probe
    stripped. ``identity`` is ``username@hostname``.
    """

    model_config = ConfigDict(frozen=True)

    output: str = Field(description="Captured command output, probe line removed")
    working_directory: str = Field(description="Directory the shell ended up in")
    identity: str = Field(description="username@hostname banner")


class SessionState(BaseModel):
    """Per-caller state kept by the preference store between calls."""

    model_config = ConfigDict(frozen=True)

    working_directory: str = Field(description="Last verified working directory")


# ---------------------------------------------------------------------------
# Hinting Models
# ---------------------------------------------------------------------------


class HintQuery(BaseModel):
    """A partial token to complete."""

    prefix: str = Field(default="", description="Case-sensitive prefix; empty matches all")
    kind: HintKind = Field(default=HintKind.BINARY)


class HintResult(BaseModel):
    """Deduplicated completion candidates in first-seen order."""

    model_config = ConfigDict(frozen=True)

    matches: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Audit Models
# ---------------------------------------------------------------------------


class CommandExecuted(BaseModel):
    """Immutable audit event emitted once per successful execution."""

    model_config = ConfigDict(frozen=True)

    command: str = Field(description="The command line as submitted")
    caller: str = Field(description="Identity of the caller that ran it")
    timestamp: datetime = Field(default_factory=datetime.now)

    def describe(self) -> str:
        return f'The user with id {self.caller}, has run the command "{self.command}".'
