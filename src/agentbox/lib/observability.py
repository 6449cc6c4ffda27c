"""
OpenTelemetry configuration with OTLP exporters for agentbox.

Installs tracer and meter providers exporting over OTLP/gRPC. Until
initialize_telemetry() runs, spans and instruments are no-ops.
"""

import logging
from typing import Optional

from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from agentbox.lib.config import ObservabilityConfig
from agentbox.lib.metrics import initialize_metrics


logger = logging.getLogger(__name__)


class TelemetryManager:
    """Manages OpenTelemetry setup and lifecycle for agentbox."""

    def __init__(self, config: ObservabilityConfig):
        self.config = config
        self._initialized = False
        self._tracer_provider: Optional[TracerProvider] = None
        self._meter_provider: Optional[MeterProvider] = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Initialize OpenTelemetry with OTLP exporters."""
        if self._initialized:
            logger.warning("Telemetry already initialized")
            return

        try:
            resource = self._build_resource()
            self._setup_tracing(resource)
            self._setup_metrics(resource)

            self._initialized = True
            logger.info(f"OpenTelemetry initialized for service: {self.config.service_name}")

        except Exception as e:
            logger.error(f"Failed to initialize OpenTelemetry: {e}")
            raise

    def _build_resource(self) -> Resource:
        """Build resource attributes for all telemetry."""
        return Resource.create({
            "service.name": self.config.service_name,
            "service.version": self.config.service_version,
            "deployment.environment": self.config.environment,
            **self.config.resource_attributes
        })

    def _setup_tracing(self, resource: Resource) -> None:
        """Setup distributed tracing with OTLP export."""
        trace_exporter = OTLPSpanExporter(
            endpoint=self.config.otlp_endpoint,
            timeout=self.config.export_timeout
        )

        self._tracer_provider = TracerProvider(
            resource=resource,
            sampler=TraceIdRatioBased(self.config.trace_sampling_ratio)
        )
        self._tracer_provider.add_span_processor(BatchSpanProcessor(trace_exporter))

        trace.set_tracer_provider(self._tracer_provider)

    def _setup_metrics(self, resource: Resource) -> None:
        """Setup metrics collection with OTLP export."""
        metric_exporter = OTLPMetricExporter(
            endpoint=self.config.otlp_endpoint,
            timeout=self.config.export_timeout
        )

        metric_reader = PeriodicExportingMetricReader(
            exporter=metric_exporter,
            export_interval_millis=10000  # 10 seconds
        )

        self._meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
        metrics.set_meter_provider(self._meter_provider)

        # Rebind the collector's instruments to the real provider
        initialize_metrics(self._meter_provider.get_meter("agentbox"))

    def shutdown(self) -> None:
        """Gracefully shutdown telemetry and flush pending data."""
        if not self._initialized:
            return

        try:
            if self._tracer_provider is not None:
                self._tracer_provider.shutdown()
            if self._meter_provider is not None:
                self._meter_provider.shutdown()

            logger.info("OpenTelemetry shutdown completed")

        except Exception as e:
            logger.error(f"Error during telemetry shutdown: {e}")
        finally:
            self._initialized = False


# Global telemetry manager instance
_telemetry_manager: Optional[TelemetryManager] = None


def initialize_telemetry(config: ObservabilityConfig) -> TelemetryManager:
    """Initialize global telemetry manager."""
    global _telemetry_manager

    _telemetry_manager = TelemetryManager(config)
    _telemetry_manager.initialize()

    return _telemetry_manager


def shutdown_telemetry() -> None:
    """Shutdown global telemetry manager."""
    global _telemetry_manager
    if _telemetry_manager:
        _telemetry_manager.shutdown()
        _telemetry_manager = None
