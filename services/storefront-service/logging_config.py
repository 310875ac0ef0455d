"""Structured logging configuration.

Every record is written to stdout as one JSON object with ``level``,
``name``, ``msg``, the service name and, inside a request, the active
trace and span ids. With ``OTEL_ENABLED`` the records are also shipped to
the collector through the OTLP logs exporter.
"""
import logging
import sys
from pythonjsonlogger import jsonlogger
from opentelemetry import trace

from config import LOG_LEVEL, OTEL_ENABLED, OTEL_EXPORTER_OTLP_ENDPOINT, SERVICE_NAME

# The OTLP logs SDK is still experimental and may be missing from an install
try:
    from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
    from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
    from opentelemetry.sdk.resources import Resource
    OTLP_LOGGING_AVAILABLE = True
except ImportError:
    OTLP_LOGGING_AVAILABLE = False

# Libraries that log every request or connection at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "multipart", "sqlalchemy.engine")


class StorefrontJsonFormatter(jsonlogger.JsonFormatter):

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        ctx = trace.get_current_span().get_span_context()
        if ctx.is_valid:
            log_record['trace_id'] = format(ctx.trace_id, '032x')
            log_record['span_id'] = format(ctx.span_id, '016x')

        log_record['service'] = SERVICE_NAME
        if 'message' in log_record:
            log_record['msg'] = log_record.pop('message')


def _stdout_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StorefrontJsonFormatter(
        '%(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level'}
    ))
    return handler


def _otlp_handler() -> logging.Handler:
    logger_provider = LoggerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True))
    )

    # Only the experimental module exposes set_logger_provider
    from opentelemetry._logs import set_logger_provider
    set_logger_provider(logger_provider)

    return LoggingHandler(level=logging.INFO, logger_provider=logger_provider)


def setup_logging():
    """Replace the root handlers with the JSON stdout handler and, if enabled, OTLP."""
    root_logger = logging.getLogger()
    root_logger.setLevel(LOG_LEVEL)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.addHandler(_stdout_handler())

    if OTEL_ENABLED and OTLP_LOGGING_AVAILABLE:
        try:
            root_logger.addHandler(_otlp_handler())
        except Exception as e:
            logging.warning(f"Failed to configure OTLP logging handler: {e}")
    elif OTEL_ENABLED:
        logging.warning("OTLP logging SDK not available - logs will only go to stdout")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
