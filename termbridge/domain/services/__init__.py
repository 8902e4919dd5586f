"""
Domain Services Package

Architectural Intent:
- Stateless domain logic that operates on ports and value objects
- No I/O of its own; shell access goes through ShellPort
"""

from termbridge.domain.services.chain_evaluator import (
    ChainEvaluator,
    EvaluationOutcome,
    FragmentResult,
    execute_single,
    run_fragment,
)
from termbridge.domain.services.command_validator import (
    CommandValidator,
    DEFAULT_BLACKLIST,
    DEFAULT_MAX_OUTPUT_CHARS,
)

__all__ = [
    "ChainEvaluator",
    "EvaluationOutcome",
    "FragmentResult",
    "execute_single",
    "run_fragment",
    "CommandValidator",
    "DEFAULT_BLACKLIST",
    "DEFAULT_MAX_OUTPUT_CHARS",
]
