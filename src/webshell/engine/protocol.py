"""Directory probe codec.

A stateless process invocation cannot report where the shell ended up,
so every command is wrapped in a subshell that, after the command runs,
prints the current directory framed by a sentinel token as its final
output line::

    <-webshell->/actual/path<-webshell->

Decoding pops that line back off and returns the directory alongside
the cleaned output.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

from webshell.domain.models import Platform

logger = logging.getLogger(__name__)

SENTINEL = "<-webshell->"

PROBE_PATTERN = re.compile(
    re.escape(SENTINEL) + r"(.*?)" + re.escape(SENTINEL), re.DOTALL
)

# {cmd} is substituted verbatim. The subshell keeps a `cd` made by the
# command visible to the trailer.
PROBE_TEMPLATES: dict[Platform, str] = {
    # Newline separator: an empty command or a trailing comment still parses.
    Platform.UNIX: '( {cmd}\necho "<-webshell->${{PWD}}<-webshell->")',
    # cmd.exe has no inline expansion at run time inside a block; capture
    # the output of CD in the FOR loop variable instead.
    Platform.WINDOWS: (
        "( {cmd} & (FOR /F \"tokens=*\" %g IN ('CD') do "
        "@echo ^<-webshell-^>%g^<-webshell-^>))"
    ),
}

# Dedicated "where am I" query, used when the probe is missing.
PWD_COMMANDS: dict[Platform, str] = {
    Platform.UNIX: "pwd",
    Platform.WINDOWS: "cd",
}


class Probe(NamedTuple):
    output: str
    directory: str


class ProbeCodec:
    """Wraps commands with the directory probe and decodes it again."""

    def __init__(self, platform: Platform | None = None) -> None:
        self._platform = platform or Platform.current()

    @property
    def platform(self) -> Platform:
        return self._platform

    @property
    def pwd_command(self) -> str:
        return PWD_COMMANDS[self._platform]

    def wrap_with_probe(self, cmd: str) -> str:
        """Compose ``cmd`` and the probe trailer into one subshell."""
        return PROBE_TEMPLATES[self._platform].format(cmd=cmd)

    def decode(self, raw: str) -> Probe:
        """Strictly decode probe output.

        Raises:
            ProtocolDecodeMismatch: The last non-empty line carries no probe.
        """
        sep = self._platform.line_separator
        lines = raw.split(sep)
        while lines and lines[-1] == "":
            lines.pop()
        if not lines:
            raise ProtocolDecodeMismatch("Output is empty, no probe line")

        last = lines.pop()
        match = PROBE_PATTERN.search(last)
        if match is None:
            raise ProtocolDecodeMismatch(f"Last line carries no probe: {last[:80]!r}")

        # Output without a trailing newline shares the line with the probe.
        head = last[: match.start()]
        if head:
            lines.append(head)
        return Probe(output=sep.join(lines), directory=match.group(1))

    def unwrap_probe(self, raw: str) -> tuple[str, str | None]:
        """Split raw output into (clean output, directory or None).

        On a mismatch the raw output is returned untouched.
        """
        try:
            probe = self.decode(raw)
        except ProtocolDecodeMismatch as e:
            logger.debug("Directory probe not recovered: %s", e)
            return raw, None
        return probe.output, probe.directory


class ProtocolDecodeMismatch(Exception):
    """Raised when command output does not end with a directory probe."""
