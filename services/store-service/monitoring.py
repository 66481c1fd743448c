"""Monitoring and observability setup.

Tracing and metrics are always wired through OpenTelemetry so that spans
and counters can be recorded anywhere in the service. The OTLP exporters
are attached only when OTEL_ENABLED is set; otherwise the providers keep
everything in-process and nothing leaves the host (tests, local runs).

Exemplars are attached automatically by the SDK to histogram points that
are recorded inside an active span, so order_amount_histogram links large
or small orders straight to the checkout trace that produced them.
"""
import logging
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
import pyroscope

from config import (
    OTEL_ENABLED,
    OTEL_EXPORTER_OTLP_ENDPOINT,
    PYROSCOPE_ENABLED,
    PYROSCOPE_SERVER,
    SERVICE_NAME,
)

logger = logging.getLogger(__name__)


def init_tracing() -> trace.Tracer:
    """
    Initialize OpenTelemetry tracing.

    Returns:
        Tracer instance
    """
    resource = Resource.create({"service.name": SERVICE_NAME})

    tracer_provider = TracerProvider(resource=resource)
    if OTEL_ENABLED:
        otlp_span_exporter = OTLPSpanExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
        logger.info(f"Tracing initialized with endpoint: {OTEL_EXPORTER_OTLP_ENDPOINT}")
    trace.set_tracer_provider(tracer_provider)

    return trace.get_tracer(__name__)


def init_metrics() -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Returns:
        Meter instance
    """
    resource = Resource.create({"service.name": SERVICE_NAME})

    metric_readers = []
    if OTEL_ENABLED:
        otlp_metric_exporter = OTLPMetricExporter(
            endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
            insecure=True
        )
        metric_readers.append(PeriodicExportingMetricReader(
            otlp_metric_exporter,
            export_interval_millis=5000
        ))
        logger.info("Metrics initialized with OTLP exporter")

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=metric_readers
    )
    metrics.set_meter_provider(meter_provider)

    return metrics.get_meter(__name__)


def init_profiling() -> None:
    """Initialize Pyroscope profiling."""
    if not PYROSCOPE_ENABLED:
        return
    try:
        pyroscope.configure(
            application_name=SERVICE_NAME,
            server_address=PYROSCOPE_SERVER,
            tags={"env": "demo"}
        )
        logger.info(f"Profiling initialized with server: {PYROSCOPE_SERVER}")
    except Exception as e:
        logger.warning(f"Failed to initialize profiling: {e}")


# Initialize tracer and meter
tracer = init_tracing()
meter = init_metrics()

# Catalog metrics
product_views_counter = meter.create_counter(
    "teststore.products.views",
    description="Catalog listings served, by listing kind",
    unit="1"
)

product_detail_views_counter = meter.create_counter(
    "teststore.products.detail_views",
    description="Individual product detail views by category",
    unit="1"
)

product_changes_counter = meter.create_counter(
    "teststore.products.changes",
    description="Admin catalog mutations (create, update, delete)",
    unit="1"
)

stock_adjustments_counter = meter.create_counter(
    "teststore.stock.adjustments",
    description="Stock deltas applied, by source (admin, order, cancel)",
    unit="1"
)

# Order workflow metrics
orders_placed_counter = meter.create_counter(
    "teststore.orders.placed",
    description="Total number of orders placed",
    unit="1"
)

order_failures_counter = meter.create_counter(
    "teststore.orders.failures",
    description="Order placements rejected, by reason",
    unit="1"
)

orders_cancelled_counter = meter.create_counter(
    "teststore.orders.cancelled",
    description="Total number of orders cancelled by customers",
    unit="1"
)

order_status_changes_counter = meter.create_counter(
    "teststore.orders.status_changes",
    description="Order status transitions applied by administrators",
    unit="1"
)

order_amount_histogram = meter.create_histogram(
    "teststore.orders.amount",
    description="Order total in USD",
    unit="USD"
)

# Security monitoring metrics
auth_failures_counter = meter.create_counter(
    "teststore.auth.failures",
    description="Total number of authentication failures",
    unit="1"
)

auth_attempts_counter = meter.create_counter(
    "teststore.auth.attempts",
    description="Total number of authentication attempts",
    unit="1"
)

rate_limit_exceeded_counter = meter.create_counter(
    "teststore.rate_limit.exceeded",
    description="Total number of rate limit violations",
    unit="1"
)

suspicious_activity_counter = meter.create_counter(
    "teststore.security.suspicious_activity",
    description="Total number of suspicious activity detections",
    unit="1"
)
