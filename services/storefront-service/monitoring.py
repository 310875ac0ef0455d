"""Monitoring and observability setup.

Traces and metrics go to the OTLP collector when ``OTEL_ENABLED`` is set.
Otherwise the SDK providers are still installed, without exporters, so the
instruments below can be recorded against unconditionally.

Stock metrics:
- ``storefront.stock.adjustments`` counts every write to a product's stock,
  labelled with the operation (reserve/release) and the outcome.
- ``storefront.stock.insufficient`` counts add/update requests rejected
  because stock could not cover them, which is also where lost races between
  concurrent carts show up.
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
    PROFILING_ENABLED,
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

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=metric_readers
    )
    metrics.set_meter_provider(meter_provider)

    if OTEL_ENABLED:
        logger.info("Metrics initialized with OTLP exporter")

    return metrics.get_meter(__name__)


def init_profiling() -> None:
    """Initialize Pyroscope profiling."""
    if not PROFILING_ENABLED:
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


tracer = init_tracing()
meter = init_metrics()

# Cart metrics
cart_additions_counter = meter.create_counter(
    "storefront.cart.additions",
    description="Total number of add-to-cart requests that succeeded",
    unit="1"
)

cart_removals_counter = meter.create_counter(
    "storefront.cart.removals",
    description="Total number of cart items removed, individually or by clearing a cart",
    unit="1"
)

# Stock metrics
stock_adjustments_counter = meter.create_counter(
    "storefront.stock.adjustments",
    description="Writes to product stock by operation and outcome",
    unit="1"
)

insufficient_stock_counter = meter.create_counter(
    "storefront.stock.insufficient",
    description="Requests rejected because stock could not cover them",
    unit="1"
)

# Catalog metrics
quick_picks_backfill_counter = meter.create_counter(
    "storefront.quick_picks.backfill",
    description="Products added to quick picks from the newest-products backfill",
    unit="1"
)

# Zone import metrics
csv_rows_counter = meter.create_counter(
    "storefront.zones.csv_rows",
    description="CSV rows processed by zone imports, by validity",
    unit="1"
)

# COD metrics
cod_orders_counter = meter.create_counter(
    "storefront.cod_orders",
    description="COD order requests by outcome",
    unit="1"
)

cod_order_amount_histogram = meter.create_histogram(
    "storefront.cod_orders.amount",
    description="Accepted COD order totals",
    unit="INR"
)

# Security monitoring metrics
rate_limit_exceeded_counter = meter.create_counter(
    "storefront.rate_limit.exceeded",
    description="Total number of rate limit violations",
    unit="1"
)

suspicious_activity_counter = meter.create_counter(
    "storefront.security.suspicious_activity",
    description="Total number of suspicious activity detections",
    unit="1"
)

# External service call metrics
external_notification_duration_histogram = meter.create_histogram(
    "storefront.external.notification.duration",
    description="Duration of notification service calls",
    unit="s"
)
