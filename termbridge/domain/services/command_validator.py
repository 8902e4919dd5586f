"""
Command Validator Domain Service

Architectural Intent:
- Rejects blacklisted base commands before anything is spawned
- Rejects malformed or oversized results before they are published

Security:
- Every fragment of a chain is checked, not only the first word of the line
- The basename of the first word is compared, so `/bin/rm` is caught too
"""

from __future__ import annotations
import os

from termbridge.domain.entities.command_result import CommandResult
from termbridge.domain.errors import CommandBlacklistedError, ResultValidationError
from termbridge.domain.value_objects.command_chain import CommandChain

DEFAULT_BLACKLIST = frozenset({"rm", "shutdown"})
DEFAULT_MAX_OUTPUT_CHARS = 10_000


def base_command(fragment: str) -> str:
    parts = fragment.split()
    if not parts:
        return ""
    return os.path.basename(parts[0])


def is_valid_text(text: str) -> bool:
    """False when the text carries undecodable bytes (lone surrogates)."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class CommandValidator:
    def __init__(
        self,
        blacklist: frozenset[str] | set[str] | tuple[str, ...] = DEFAULT_BLACKLIST,
        max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS,
    ) -> None:
        self.blacklist = frozenset(blacklist)
        self.max_output_chars = max_output_chars

    def validate_command(self, command: str) -> CommandChain:
        """Return the parsed chain, or raise CommandBlacklistedError."""
        chain = CommandChain.parse(command)
        for fragment in chain.commands:
            name = base_command(fragment)
            if name in self.blacklist:
                raise CommandBlacklistedError(name)
        return chain

    def validate_result(self, result: CommandResult) -> None:
        if not result.session_id:
            raise ResultValidationError("Session ID is empty")
        if len(result.result) > self.max_output_chars:
            raise ResultValidationError(
                f"Command output is too long ({len(result.result)} > "
                f"{self.max_output_chars} characters)"
            )
        if not is_valid_text(result.result):
            raise ResultValidationError("Command output contains invalid text")
