import uuid
from dataclasses import dataclass

from termbridge.domain.errors import InvalidSessionError


@dataclass(frozen=True)
class SessionId:
    """
    Value Object representing a client's shell session identifier.
    """
    value: str

    def __post_init__(self):
        if not self.value or not self.value.strip():
            raise InvalidSessionError("Session ID cannot be empty")

    @classmethod
    def generate(cls) -> "SessionId":
        return cls(str(uuid.uuid4()))

    def __str__(self):
        return self.value
