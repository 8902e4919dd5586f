"""
OpenTelemetry Exporter for termbridge

Architectural Intent:
- Exports command execution telemetry to OTLP-compatible backends
- Records per-command duration and the number of live shell sessions
- Wraps each handled message in a tracing span
- shutdown() flushes batched spans and stops the SDK providers

Security:
- Endpoint defaults to empty string (must be explicitly configured)
- Non-localhost http:// endpoints rejected unless insecure=True
- Validation in __post_init__ prevents accidental plaintext export
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Any
from urllib.parse import urlparse
import asyncio
import logging
from datetime import datetime, UTC

logger = logging.getLogger(__name__)

COMMAND_DURATION_METRIC = "termbridge.command.duration_ms"
ACTIVE_SESSIONS_METRIC = "termbridge.sessions.active"
METRICS_BUFFER_LIMIT = 1000


@dataclass
class OTELConfig:
    endpoint: str = ""
    service_name: str = "termbridge"
    environment: str = "development"
    enable_traces: bool = True
    enable_metrics: bool = True
    insecure: bool = False

    def __post_init__(self) -> None:
        if self.endpoint:
            parsed = urlparse(self.endpoint)
            is_localhost = parsed.hostname in ("localhost", "127.0.0.1", "::1")
            if parsed.scheme == "http" and not is_localhost and not self.insecure:
                raise ValueError(
                    f"Non-localhost HTTP endpoint '{self.endpoint}' requires "
                    "insecure=True or use https://. "
                    "Set insecure=True to explicitly allow plaintext export."
                )


class OTELExporter:
    """
    OpenTelemetry exporter for the command server.

    Metrics are always buffered locally so they can be inspected without a
    collector; with an endpoint configured they are also sent over OTLP gRPC.
    """

    def __init__(self, config: OTELConfig):
        self.config = config
        self._initialized = False
        self._metrics_buffer: list[dict[str, Any]] = []
        self._meter: Any = None
        self._tracer: Any = None
        self._gauges: dict[str, Any] = {}
        self._tracer_provider: Any = None
        self._meter_provider: Any = None

    @property
    def enabled(self) -> bool:
        return self._initialized

    @property
    def buffered_metrics(self) -> list[dict[str, Any]]:
        return list(self._metrics_buffer)

    async def initialize(self) -> None:
        """Initialize OpenTelemetry SDK and exporters."""
        if not self.config.endpoint:
            logger.info("OTEL endpoint not configured, telemetry disabled")
            return

        try:
            from opentelemetry import trace
            from opentelemetry.sdk.trace import TracerProvider
            from opentelemetry.sdk.trace.export import BatchSpanProcessor
            from opentelemetry.sdk.resources import Resource, SERVICE_NAME
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )
            from opentelemetry import metrics
            from opentelemetry.sdk.metrics import MeterProvider
            from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                OTLPMetricExporter,
            )

            resource = Resource(
                attributes={
                    SERVICE_NAME: self.config.service_name,
                    "environment": self.config.environment,
                }
            )

            if self.config.enable_traces:
                provider = TracerProvider(resource=resource)
                provider.add_span_processor(
                    BatchSpanProcessor(
                        OTLPSpanExporter(
                            endpoint=self.config.endpoint,
                            insecure=self.config.insecure,
                        )
                    )
                )
                trace.set_tracer_provider(provider)
                self._tracer_provider = provider
                self._tracer = trace.get_tracer(__name__)

            if self.config.enable_metrics:
                metric_reader = PeriodicExportingMetricReader(
                    OTLPMetricExporter(
                        endpoint=self.config.endpoint,
                        insecure=self.config.insecure,
                    )
                )
                self._meter_provider = MeterProvider(
                    resource=resource, metric_readers=[metric_reader]
                )
                metrics.set_meter_provider(self._meter_provider)
                self._meter = metrics.get_meter(__name__)

            self._initialized = True
            logger.info("OTEL export enabled to %s", self.config.endpoint)

        except ImportError:
            logger.warning("OpenTelemetry SDK not installed, telemetry disabled")
            self._initialized = False
        except Exception as e:
            logger.error("Failed to initialize OTEL: %s", e)
            self._initialized = False

    def _get_gauge(self, name: str, unit: str = "") -> Any:
        """Get or create a gauge for a metric name."""
        if name not in self._gauges and self._meter:
            self._gauges[name] = self._meter.create_gauge(name, unit=unit)
        return self._gauges.get(name)

    def record_metric(
        self,
        name: str,
        value: float,
        unit: str = "",
        attributes: Optional[dict[str, str]] = None,
    ) -> None:
        """Record a metric value."""
        if len(self._metrics_buffer) >= METRICS_BUFFER_LIMIT:
            del self._metrics_buffer[0]
        self._metrics_buffer.append(
            {
                "name": name,
                "value": value,
                "unit": unit,
                "attributes": attributes or {},
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )

        if self._initialized:
            gauge = self._get_gauge(name, unit)
            if gauge:
                gauge.set(value, attributes=attributes or {})

    def record_command(
        self,
        session_id: str,
        status: str,
        duration_ms: float,
    ) -> None:
        """Record the outcome and wall time of one handled command."""
        self.record_metric(
            COMMAND_DURATION_METRIC,
            duration_ms,
            unit="ms",
            attributes={
                "session_id": session_id,
                "status": status,
            },
        )

    def record_active_sessions(self, count: int) -> None:
        self.record_metric(ACTIVE_SESSIONS_METRIC, float(count))

    def start_span(
        self,
        name: str,
        attributes: Optional[dict[str, str]] = None,
    ) -> Optional[Any]:
        """Start a tracing span."""
        if not self._initialized or self._tracer is None:
            return None
        return self._tracer.start_span(name, attributes=attributes or {})

    def end_span(self, span: Any, status: Optional[str] = None) -> None:
        """End a tracing span."""
        if span is None:
            return
        if status:
            span.set_attribute("termbridge.status", status)
        span.end()

    async def export(self) -> None:
        """Clear the local buffer; the SDK reader handles periodic export."""
        if not self._initialized:
            return

        exported_count = len(self._metrics_buffer)
        self._metrics_buffer.clear()

        if exported_count:
            logger.debug("Flushed %d buffered metrics", exported_count)


    async def shutdown(self) -> None:
        """Flush pending spans and metrics, then stop the SDK providers."""
        await self.export()
        providers = [
            p for p in (self._tracer_provider, self._meter_provider) if p is not None
        ]
        if not providers:
            return

        loop = asyncio.get_event_loop()
        for provider in providers:
            await loop.run_in_executor(None, provider.shutdown)
        self._tracer_provider = None
        self._meter_provider = None
        self._tracer = None
        self._meter = None
        self._gauges.clear()
        self._initialized = False
        logger.info("OTEL export stopped")

async def create_exporter(
    endpoint: Optional[str] = None,
    service_name: str = "termbridge",
    insecure: bool = False,
) -> OTELExporter:
    """Factory function to create OTEL exporter."""
    config = OTELConfig(
        endpoint=endpoint or "",
        service_name=service_name,
        insecure=insecure,
    )
    exporter = OTELExporter(config)
    await exporter.initialize()
    return exporter
