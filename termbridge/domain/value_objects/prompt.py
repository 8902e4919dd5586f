"""
Prompt Value Object

Architectural Intent:
- Recovers user and working directory from a `user@host:path$` prompt line
- Parsing is lenient: a malformed line yields empty fields, never an error
"""

from __future__ import annotations
from dataclasses import dataclass

PROMPT_SUFFIXES = ("$ ", "# ")
PROMPT_SYMBOLS = ("$", "#")


def is_prompt_line(line: str) -> bool:
    """True when the line ends with a `$ ` or `# ` prompt marker."""
    return line.endswith(PROMPT_SUFFIXES)


@dataclass(frozen=True)
class PromptInfo:
    line: str
    user: str = ""
    host: str = ""
    cwd: str = ""
    symbol: str = ""

    @classmethod
    def parse(cls, line: str) -> "PromptInfo":
        stripped = line.rstrip()
        symbol = stripped[-1:] if stripped.endswith(PROMPT_SYMBOLS) else ""
        body = stripped[:-1] if symbol else stripped

        if "@" not in body or ":" not in body:
            return cls(line=line, symbol=symbol)

        user = body.split("@", 1)[0]
        host_part, _, cwd = body.partition(":")
        host = host_part.split("@", 1)[1] if "@" in host_part else ""
        if not symbol:
            cwd = ""
        return cls(line=line, user=user, host=host, cwd=cwd, symbol=symbol)

    @property
    def is_root(self) -> bool:
        return self.symbol == "#"
