"""Telemetry initialization for otel-xray-lambda.

:func:`init_telemetry` runs once per process, at Lambda init. It builds the
tracer provider with the Lambda resource, X-Ray compatible trace ids, a
parent-based always-on sampler and a batch span processor feeding the signed
X-Ray exporter, and installs the global propagator. The returned
:class:`TelemetryCompletionHandler` is used after every invocation to flush
the buffered spans before the execution environment is frozen.
"""

import os
from typing import Optional, Sequence, Tuple

from opentelemetry import trace
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.sdk.extension.aws.trace import AwsXRayIdGenerator
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import IdGenerator, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON, ParentBased, Sampler

from .config import FunctionConfig
from .constants import Defaults, EnvVars
from .logger import create_logger
from .propagation import setup_propagator
from .transport import create_xray_exporter

logger = create_logger("telemetry")


def get_lambda_resource(
    custom_resource: Optional[Resource] = None,
    service_name: Optional[str] = None,
) -> Resource:
    """Create a resource describing the Lambda function.

    ``service.name`` comes from ``service_name`` or, when omitted, from
    ``SERVICE_NAME``, ``OTEL_SERVICE_NAME`` and ``AWS_LAMBDA_FUNCTION_NAME`` in
    that order. ``OTEL_RESOURCE_ATTRIBUTES`` is merged in by the SDK, and
    ``custom_resource`` overrides everything.

    Args:
        custom_resource: Optional resource merged on top
        service_name: Explicit service name

    Returns:
        Resource: The Lambda resource
    """
    attributes = {
        "cloud.provider": "aws",
    }

    if region := os.environ.get(EnvVars.AWS_REGION):
        attributes["cloud.region"] = region

    if function_name := os.environ.get(EnvVars.AWS_LAMBDA_FUNCTION_NAME):
        attributes["faas.name"] = function_name

    if version := os.environ.get(EnvVars.AWS_LAMBDA_FUNCTION_VERSION):
        attributes["faas.version"] = version

    if log_stream := os.environ.get(EnvVars.AWS_LAMBDA_LOG_STREAM_NAME):
        attributes["faas.instance"] = log_stream

    if memory := os.environ.get(EnvVars.AWS_LAMBDA_FUNCTION_MEMORY_SIZE):
        try:
            attributes["faas.max_memory"] = int(memory) * 1024 * 1024
        except ValueError:
            logger.warn(f"Invalid {EnvVars.AWS_LAMBDA_FUNCTION_MEMORY_SIZE}: {memory!r}")

    attributes["service.name"] = (
        service_name
        or os.environ.get(EnvVars.SERVICE_NAME)
        or os.environ.get(EnvVars.OTEL_SERVICE_NAME)
        or function_name
        or Defaults.SERVICE_NAME
    )

    resource = Resource.create(attributes)
    if custom_resource is not None:
        resource = resource.merge(custom_resource)
    return resource


class TelemetryCompletionHandler:
    """Flushes buffered spans at the end of an invocation.

    Losing trace data must never fail the invocation, so every flush problem
    is reported as a warning and swallowed here.
    """

    def __init__(
        self,
        tracer_provider: TracerProvider,
        flush_timeout_millis: int = Defaults.FLUSH_TIMEOUT,
    ):
        self._tracer_provider = tracer_provider
        self._flush_timeout_millis = flush_timeout_millis

    @property
    def tracer_provider(self) -> TracerProvider:
        return self._tracer_provider

    def get_tracer(self, name: str = Defaults.TRACER_NAME) -> trace.Tracer:
        return self._tracer_provider.get_tracer(name)

    def complete(self) -> bool:
        """Force flush the tracer provider with a bounded wait.

        Returns:
            bool: True when all spans were exported in time
        """
        try:
            flushed = self._tracer_provider.force_flush(self._flush_timeout_millis)
        except Exception as e:
            logger.warn(f"failed to force flush: {e}")
            return False

        if not flushed:
            logger.warn("failed to force flush")
            return False
        return True

    def shutdown(self) -> None:
        self._tracer_provider.shutdown()


def init_telemetry(
    config: Optional[FunctionConfig] = None,
    *,
    resource: Optional[Resource] = None,
    span_processors: Optional[Sequence[SpanProcessor]] = None,
    exporter: Optional[SpanExporter] = None,
    id_generator: Optional[IdGenerator] = None,
    sampler: Optional[Sampler] = None,
    propagators: Optional[Sequence[TextMapPropagator]] = None,
) -> Tuple[trace.Tracer, TelemetryCompletionHandler]:
    """Initialize OpenTelemetry for the function.

    Call once at process start; the returned objects are reused by every
    invocation the process serves.

    Args:
        config: Function configuration, read from the environment when omitted
        resource: Resource merged on top of the Lambda resource
        span_processors: Span processors replacing the default batch processor
        exporter: Exporter for the default batch processor, the signed X-Ray
            exporter when omitted
        id_generator: Id generator, X-Ray compatible ids when omitted
        sampler: Sampler, ``ParentBased(ALWAYS_ON)`` when omitted
        propagators: Propagators, ``OTEL_PROPAGATORS`` is used when omitted

    Returns:
        tuple[trace.Tracer, TelemetryCompletionHandler]: Tracer for the
        invocation spans and the handler that flushes after each invocation
    """
    config = config or FunctionConfig.from_env()

    tracer_provider = TracerProvider(
        resource=get_lambda_resource(resource, service_name=config.service_name),
        id_generator=id_generator or AwsXRayIdGenerator(),
        sampler=sampler or ParentBased(ALWAYS_ON),
    )

    if span_processors:
        for processor in span_processors:
            tracer_provider.add_span_processor(processor)
    else:
        tracer_provider.add_span_processor(
            BatchSpanProcessor(
                exporter or create_xray_exporter(config.region, timeout=config.exporter_timeout),
                schedule_delay_millis=1000,
                max_export_batch_size=512,
                max_queue_size=2048,
            )
        )

    setup_propagator(list(propagators) if propagators else None)
    trace.set_tracer_provider(tracer_provider)

    logger.debug(
        f"Telemetry initialized for {config.service_name}, "
        f"exporting to {config.region}"
    )

    completion_handler = TelemetryCompletionHandler(
        tracer_provider, flush_timeout_millis=config.flush_timeout_millis
    )
    return completion_handler.get_tracer(), completion_handler
