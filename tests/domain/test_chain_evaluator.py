"""Tests for the chain evaluator domain service."""

from conftest import FakeShell
from termbridge.domain.entities.command_result import CommandStatus
from termbridge.domain.errors import ExecutionTimeoutError, NoPreviousDirectoryError
from termbridge.domain.services.chain_evaluator import (
    ChainEvaluator,
    FragmentResult,
    execute_single,
    run_fragment,
)
from termbridge.domain.value_objects.command_chain import CommandChain


def evaluate(line, shell=None):
    shell = shell or FakeShell()
    outcome = ChainEvaluator().evaluate(shell, CommandChain.parse(line))
    return shell, outcome


class TestShortCircuit:
    def test_and_runs_both_on_success(self):
        shell, outcome = evaluate("a && b")
        assert shell.executed == ["a", "b"]
        assert outcome.status == CommandStatus.SUCCESS
        assert outcome.output == "out:a\nout:b\n"
        assert outcome.error == ""

    def test_and_stops_on_failure(self):
        shell, outcome = evaluate("fail && b")
        assert shell.executed == ["fail"]
        assert outcome.status == CommandStatus.ERROR
        assert outcome.error == "Command exited with status 1"

    def test_or_stops_on_success(self):
        shell, outcome = evaluate("a || b")
        assert shell.executed == ["a"]
        assert outcome.status == CommandStatus.SUCCESS

    def test_or_runs_alternative_on_failure(self):
        shell, outcome = evaluate("fail || b")
        assert shell.executed == ["fail", "b"]
        # Any failed executed fragment marks the whole chain as an error.
        assert outcome.status == CommandStatus.ERROR
        assert outcome.output == "fail failed\nout:b\n"

    def test_failed_and_resumes_at_next_or(self):
        shell, outcome = evaluate("fail && b || c")
        assert shell.executed == ["fail", "c"]
        assert [f.executed for f in outcome.fragments] == [True, False, True]

    def test_success_then_or_skips_through_following_and(self):
        shell, outcome = evaluate("a || b && c")
        assert shell.executed == ["a"]

    def test_long_and_chain_skips_to_or(self):
        shell, _ = evaluate("a && fail && b && c || d && e")
        assert shell.executed == ["a", "fail", "d", "e"]

    def test_command_text_is_rendered_chain(self):
        _, outcome = evaluate("a&&  && b")
        assert outcome.command == "a && b"


class TestCommandErrors:
    def test_timeout_counts_as_failure(self):
        shell = FakeShell(errors={"slow": ExecutionTimeoutError(30, "partial")})
        shell, outcome = evaluate("slow && b", shell)
        assert shell.executed == ["slow"]
        assert outcome.status == CommandStatus.ERROR
        assert outcome.error == "Command timed out after 30s"
        assert outcome.output == "partial\n"

    def test_directory_error_resumes_at_or(self):
        shell = FakeShell(errors={"cd -": NoPreviousDirectoryError()})
        shell, outcome = evaluate("cd - || echo fallback", shell)
        assert shell.executed == ["cd -", "echo fallback"]
        assert "No previous directory" in outcome.error

    def test_errors_of_failed_fragments_are_joined(self):
        _, outcome = evaluate("fail1 || fail2")
        assert outcome.error == (
            "Command exited with status 1\nCommand exited with status 1"
        )


class TestSingleCommand:
    def test_execute_single(self, fake_shell):
        outcome = execute_single(fake_shell, "whoami")
        assert fake_shell.executed == ["whoami"]
        assert outcome.command == "whoami"
        assert outcome.output == "out:whoami\n"
        assert outcome.status == CommandStatus.SUCCESS

    def test_run_fragment_non_zero_exit(self, fake_shell):
        fragment = run_fragment(fake_shell, "fail")
        assert fragment.failed
        assert fragment.exit_code == 1

    def test_skipped_fragment_never_fails(self):
        fragment = FragmentResult.skipped("b")
        assert not fragment.executed
        assert not fragment.failed
