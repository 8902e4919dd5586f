"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from termbridge.domain.ports.shell_port import ShellPort
from termbridge.domain.ports.message_bus_port import MessageBusPort

__all__ = [
    "ShellPort",
    "MessageBusPort",
]
