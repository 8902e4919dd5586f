"""
Chain Evaluator Domain Service

Architectural Intent:
- Gives `&&` / `||` joined command lines short-circuit semantics
- Each fragment runs through the session's ShellPort, left to right
- The session lock is held for the whole chain so fragments of one message
  never interleave with another message's commands

Control Flow:
- should_run / skip_until_or flags decide whether a fragment executes
- A failed AND skips ahead until the next OR, where execution resumes
- A successful OR skips the remaining alternatives
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional
import logging

from termbridge.domain.entities.command_result import CommandStatus, ExecutionOutcome
from termbridge.domain.errors import CommandExecutionError
from termbridge.domain.ports.shell_port import ShellPort
from termbridge.domain.value_objects.command_chain import CommandChain, Connective

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FragmentResult:
    command: str
    output: str = ""
    exit_code: int = 0
    error: str = ""
    executed: bool = True

    @property
    def failed(self) -> bool:
        return self.executed and (self.exit_code != 0 or bool(self.error))

    @classmethod
    def skipped(cls, command: str) -> "FragmentResult":
        return cls(command=command, executed=False)


@dataclass(frozen=True)
class EvaluationOutcome:
    """Aggregate of every fragment of one inbound command."""
    command: str
    fragments: tuple[FragmentResult, ...] = field(default_factory=tuple)

    @property
    def executed(self) -> list[FragmentResult]:
        return [f for f in self.fragments if f.executed]

    @property
    def status(self) -> CommandStatus:
        if any(f.failed for f in self.executed):
            return CommandStatus.ERROR
        return CommandStatus.SUCCESS

    @property
    def output(self) -> str:
        return "".join(f.output + "\n" for f in self.executed)

    @property
    def error(self) -> str:
        return "\n".join(f.error for f in self.executed if f.failed and f.error)


def run_fragment(
    shell: ShellPort, command: str, timeout: Optional[float] = None
) -> FragmentResult:
    """Execute one command, folding command-level errors into the result."""
    try:
        outcome: ExecutionOutcome = shell.execute(command, timeout=timeout)
    except CommandExecutionError as e:
        logger.info("Command failed in session %s: %s", shell.session_id, e)
        return FragmentResult(command=command, output=e.output, exit_code=-1, error=str(e))

    error = ""
    if not outcome.succeeded:
        error = f"Command exited with status {outcome.exit_code}"
    return FragmentResult(
        command=command,
        output=outcome.output,
        exit_code=outcome.exit_code,
        error=error,
    )


def execute_single(
    shell: ShellPort, command: str, timeout: Optional[float] = None
) -> EvaluationOutcome:
    """Run a non-chained command directly, without chain bookkeeping."""
    with shell.locked():
        fragment = run_fragment(shell, command, timeout)
    return EvaluationOutcome(command=command, fragments=(fragment,))


class ChainEvaluator:
    def __init__(self, timeout: Optional[float] = None) -> None:
        self.timeout = timeout

    def evaluate(self, shell: ShellPort, chain: CommandChain) -> EvaluationOutcome:
        should_run = True
        skip_until_or = False
        fragments: list[FragmentResult] = []

        with shell.locked():
            for index, command in enumerate(chain.commands):
                if (
                    not should_run
                    and skip_until_or
                    and chain.preceding(index) is Connective.OR
                ):
                    should_run = True
                    skip_until_or = False

                if not should_run:
                    logger.debug("Skipping chain fragment %d: %s", index, command)
                    fragments.append(FragmentResult.skipped(command))
                    continue

                fragment = run_fragment(shell, command, self.timeout)
                fragments.append(fragment)

                following = chain.following(index)
                if following is Connective.AND:
                    if fragment.failed:
                        should_run = False
                        skip_until_or = True
                    else:
                        should_run = True
                elif following is Connective.OR:
                    should_run = fragment.failed

        return EvaluationOutcome(command=chain.render(), fragments=tuple(fragments))
