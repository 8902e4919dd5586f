"""
Command DTOs

Architectural Intent:
- Data Transfer Objects for the command message boundary
- Input validation at the application boundary
- Decouples the wire payload from the domain model
"""

from dataclasses import dataclass
from typing import Any
import json

from termbridge.domain.errors import PayloadParseError


@dataclass(frozen=True)
class CommandRequest:
    command: str
    session_id: str = ""

    def __post_init__(self) -> None:
        if not self.command or not self.command.strip():
            raise PayloadParseError("command cannot be empty")

    @classmethod
    def from_json(cls, payload: str | bytes) -> "CommandRequest":
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PayloadParseError(f"Invalid JSON payload: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> "CommandRequest":
        if not isinstance(data, dict):
            raise PayloadParseError("Payload must be a JSON object")
        command = data.get("command")
        if not isinstance(command, str):
            raise PayloadParseError("Payload is missing a string 'command'")
        session_id = data.get("session_id") or ""
        if not isinstance(session_id, str):
            raise PayloadParseError("'session_id' must be a string")
        return cls(command=command, session_id=session_id)

    def to_json(self) -> str:
        return json.dumps({"command": self.command, "session_id": self.session_id})
