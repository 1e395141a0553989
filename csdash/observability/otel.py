"""OpenTelemetry + Prometheus fallback wiring for the CSDash backend."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from fastapi import FastAPI

from csdash import config

logger = logging.getLogger("csdash.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None
_fastapi_instrumentor: Any | None = None

_fetch_counter: Any | None = None
_extraction_counter: Any | None = None
_extraction_latency_hist: Any | None = None
_fallback_counter: Any | None = None

_prom_enabled = False
_prom_fetch_counter: Any | None = None
_prom_extraction_counter: Any | None = None
_prom_extraction_latency_hist: Any | None = None
_prom_fallback_counter: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _label(value: str) -> str:
    return (value or "").strip() or "unknown"


def initialize(app: FastAPI | None = None) -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider, _fastapi_instrumentor
    global _fetch_counter, _extraction_counter, _extraction_latency_hist, _fallback_counter
    global _prom_enabled, _prom_fetch_counter, _prom_extraction_counter
    global _prom_extraction_latency_hist, _prom_fallback_counter

    if _initialized:
        if _enabled and app and _fastapi_instrumentor:
            _fastapi_instrumentor.instrument_app(app)
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (CSDASH_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "csdash-backend"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "csdash",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=traces_endpoint or None)))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("csdash.backend")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("csdash.backend")

    _fetch_counter = meter.create_counter(
        "csdash_fetch_attempts_total",
        unit="1",
        description="Upstream fetch attempts by acquisition strategy and outcome",
    )
    _extraction_counter = meter.create_counter(
        "csdash_extractions_total",
        unit="1",
        description="Completed extraction runs by winning source",
    )
    _extraction_latency_hist = meter.create_histogram(
        "csdash_extraction_latency_ms",
        unit="ms",
        description="End-to-end latency of extraction runs",
    )
    _fallback_counter = meter.create_counter(
        "csdash_sample_fallbacks_total",
        unit="1",
        description="Extraction runs answered with placeholder sample data",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _fastapi_instrumentor = FastAPIInstrumentor()
    _enabled = True

    if app:
        _fastapi_instrumentor.instrument_app(app)

    if config.PROM_PORT > 0:
        try:
            from prometheus_client import Counter, Histogram, start_http_server

            start_http_server(config.PROM_PORT)
            _prom_enabled = True
            _prom_fetch_counter = Counter(
                "csdash_fetch_attempts_total",
                "Upstream fetch attempts by acquisition strategy and outcome",
                ["strategy", "result"],
            )
            _prom_extraction_counter = Counter(
                "csdash_extractions_total",
                "Completed extraction runs by winning source",
                ["source"],
            )
            _prom_extraction_latency_hist = Histogram(
                "csdash_extraction_latency_ms",
                "End-to-end latency of extraction runs",
                ["source"],
            )
            _prom_fallback_counter = Counter(
                "csdash_sample_fallbacks_total",
                "Extraction runs answered with placeholder sample data",
                ["reason"],
            )
            logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Prometheus fallback not started: %s", exc)
            _prom_enabled = False

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown(app: FastAPI | None = None) -> None:
    global _enabled
    if not _initialized:
        return
    try:
        if app and _fastapi_instrumentor:
            _fastapi_instrumentor.uninstrument_app(app)
    except Exception:  # noqa: BLE001
        logger.debug("FastAPI uninstrumentation failed", exc_info=True)
    for provider in (_meter_provider, _trace_provider):
        try:
            if provider is not None:
                provider.shutdown()
        except Exception:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed", exc_info=True)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_fetch_attempt(strategy: str, result: str) -> None:
    labels = {"strategy": _label(strategy), "result": _label(result)}
    if _enabled and _fetch_counter is not None:
        _fetch_counter.add(1, labels)
    if _prom_enabled and _prom_fetch_counter is not None:
        _prom_fetch_counter.labels(**labels).inc()


def record_extraction(source: str, count: int, duration_ms: float) -> None:
    labels = {"source": _label(source)}
    if _enabled and _extraction_counter is not None:
        _extraction_counter.add(1, {**labels, "sessions": max(0, int(count))})
    if _enabled and _extraction_latency_hist is not None:
        _extraction_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_extraction_counter is not None:
        _prom_extraction_counter.labels(**labels).inc()
    if _prom_enabled and _prom_extraction_latency_hist is not None:
        _prom_extraction_latency_hist.labels(**labels).observe(max(0.0, float(duration_ms)))


def record_fallback(reason: str) -> None:
    labels = {"reason": _label(reason)}
    if _enabled and _fallback_counter is not None:
        _fallback_counter.add(1, labels)
    if _prom_enabled and _prom_fallback_counter is not None:
        _prom_fallback_counter.labels(**labels).inc()
