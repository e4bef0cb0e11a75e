import logging

from opentelemetry import metrics, trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from .config import Settings

logger = logging.getLogger(__name__)


def configure_otel(settings: Settings) -> None:
    """Install tracer, meter and logger providers.

    Metrics are always readable through the Prometheus reader backing
    ``/metrics``. Spans, logs and a copy of the metrics are pushed over OTLP
    only when ``APP_OTLP_ENDPOINT`` is set.
    """
    resource = Resource.create({"service.name": settings.service_name, "service.version": settings.version})
    endpoint = settings.otlp_endpoint.rstrip("/") if settings.otlp_endpoint else None

    tracer_provider = TracerProvider(resource=resource)
    if endpoint:
        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces")))
    trace.set_tracer_provider(tracer_provider)

    metric_readers = [PrometheusMetricReader()]
    if endpoint:
        metric_readers.append(
            PeriodicExportingMetricReader(
                OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"),
                export_interval_millis=15000,
            )
        )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=metric_readers))

    LoggingInstrumentor().instrument(set_logging_format=True, log_level=logging.getLevelName(settings.log_level))
    logging.getLogger().setLevel(settings.log_level)

    if endpoint:
        logger_provider = LoggerProvider(resource=resource)
        logger_provider.add_log_record_processor(BatchLogRecordProcessor(OTLPLogExporter(endpoint=f"{endpoint}/v1/logs")))
        set_logger_provider(logger_provider)
        handler = LoggingHandler(level=logging.INFO, logger_provider=logger_provider)
        logging.getLogger().addHandler(handler)
        logger.info("otlp export enabled", extra={"endpoint": endpoint})
