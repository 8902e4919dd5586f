"""
termbridge Telemetry Infrastructure

Architectural Intent:
- OpenTelemetry integration for observability
- Command duration and active session metrics, per-message spans
"""

from termbridge.infrastructure.telemetry.otel_exporter import (
    OTELExporter,
    OTELConfig,
    create_exporter,
)

__all__ = [
    "OTELExporter",
    "OTELConfig",
    "create_exporter",
]
