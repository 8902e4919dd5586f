"""
Command Result Module

Architectural Intent:
- CommandResult is the wire contract published on the results channel
- ExecutionOutcome is what a shell session reports for one command
- Exactly one of (output, error) is authoritative; both may carry text
- Empty optional fields are omitted from the JSON form
"""

from __future__ import annotations
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Optional
import json

from termbridge.domain.value_objects.prompt import PromptInfo


class CommandStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class ExecutionOutcome:
    output: str
    exit_code: int = 0
    prompt: Optional[PromptInfo] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


_ALWAYS_PRESENT = ("status", "command")


@dataclass(frozen=True)
class CommandResult:
    status: CommandStatus
    command: str
    result: str = ""
    error: str = ""
    pwd: str = ""
    username: str = ""
    session_id: str = ""
    prompt: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == CommandStatus.SUCCESS

    @classmethod
    def failure(
        cls,
        command: str,
        error: str,
        session_id: str = "",
        **extra: str,
    ) -> "CommandResult":
        return cls(
            status=CommandStatus.ERROR,
            command=command,
            error=error,
            session_id=session_id,
            **extra,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return {
            key: value
            for key, value in data.items()
            if key in _ALWAYS_PRESENT or value
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CommandResult":
        try:
            status = CommandStatus(data.get("status", "error"))
        except ValueError:
            status = CommandStatus.ERROR
        return cls(
            status=status,
            command=str(data.get("command", "")),
            result=str(data.get("result", "")),
            error=str(data.get("error", "")),
            pwd=str(data.get("pwd", "")),
            username=str(data.get("username", "")),
            session_id=str(data.get("session_id", "")),
            prompt=str(data.get("prompt", "")),
        )
