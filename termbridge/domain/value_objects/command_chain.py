"""
Command Chain Value Object

Architectural Intent:
- Immutable representation of a command line joined by `&&` / `||`
- Splitting is lexical: connectives inside quoted arguments are NOT protected
  (`echo "a && b"` is split into two fragments)
- Empty fragments are dropped, so the rendered chain may differ from the raw line
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class Connective(Enum):
    AND = "&&"
    OR = "||"

    @property
    def symbol(self) -> str:
        return self.value


@dataclass(frozen=True)
class CommandChain:
    """
    Ordered commands and the connectives between them.

    operators[i] sits between commands[i] and commands[i + 1].
    """
    commands: tuple[str, ...]
    operators: tuple[Connective, ...] = ()

    def __post_init__(self) -> None:
        if self.commands and len(self.operators) != len(self.commands) - 1:
            raise ValueError(
                f"Chain of {len(self.commands)} commands needs "
                f"{len(self.commands) - 1} operators, got {len(self.operators)}"
            )
        if not self.commands and self.operators:
            raise ValueError("Empty chain cannot carry operators")

    @classmethod
    def parse(cls, line: str) -> "CommandChain":
        """Split a raw line on `&&`, then each piece on `||`."""
        commands: list[str] = []
        operators: list[Connective] = []

        for i, and_part in enumerate(line.split(Connective.AND.symbol)):
            for j, fragment in enumerate(and_part.split(Connective.OR.symbol)):
                fragment = fragment.strip()
                if not fragment:
                    continue
                if commands:
                    operators.append(Connective.OR if j > 0 else Connective.AND)
                commands.append(fragment)

        return cls(tuple(commands), tuple(operators))

    @property
    def is_chained(self) -> bool:
        return len(self.commands) > 1

    def preceding(self, index: int) -> Connective | None:
        """Connective immediately before commands[index], None for the first."""
        if index <= 0:
            return None
        return self.operators[index - 1]

    def following(self, index: int) -> Connective | None:
        """Connective immediately after commands[index], None for the last."""
        if index >= len(self.operators):
            return None
        return self.operators[index]

    def render(self) -> str:
        if not self.commands:
            return ""
        parts = [self.commands[0]]
        for op, cmd in zip(self.operators, self.commands[1:]):
            parts.append(op.symbol)
            parts.append(cmd)
        return " ".join(parts)

    def __len__(self) -> int:
        return len(self.commands)

    def __str__(self) -> str:
        return self.render()
