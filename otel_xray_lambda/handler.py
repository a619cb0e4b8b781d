"""Traced invocation scope for Lambda handlers.

:func:`traced_handler` wraps one invocation in exactly one SERVER span whose
parent is the context extracted from the inbound headers. The extracted
context (and with it the caller's baggage) is attached only while the
invocation runs and detached afterwards, so a warm process starts every
invocation from an empty context. Spans are flushed when the scope exits,
whether the handler returned or raised.
"""

import os
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Any, Dict, Optional

from opentelemetry import context as context_api
from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind

from .constants import EnvVars
from .events import HttpApiRequest
from .logger import create_logger
from .propagation import ExtractedContext, extract_context
from .telemetry import TelemetryCompletionHandler

logger = create_logger("handler")

# Only the first invocation of a process is a cold start
_is_cold_start = True


def _extract_span_attributes(
    request: Optional[HttpApiRequest], context: Optional[Any]
) -> Dict[str, Any]:
    """Build the invocation span attributes from the request and Lambda context."""
    attributes: Dict[str, Any] = {}

    if context is not None:
        request_id = getattr(context, "aws_request_id", None) or os.environ.get(
            EnvVars.AWS_LAMBDA_REQUEST_ID
        )
        if request_id:
            attributes["faas.invocation_id"] = request_id

        arn = getattr(context, "invoked_function_arn", None)
        if isinstance(arn, str):
            arn_parts = arn.split(":")
            if len(arn_parts) >= 5:
                attributes["cloud.resource_id"] = arn
                attributes["cloud.account.id"] = arn_parts[4]

    attributes["faas.trigger"] = "other"
    if request is None or not request.method:
        return attributes

    attributes["faas.trigger"] = "http"
    attributes["http.request.method"] = request.method
    attributes["url.path"] = request.raw_path
    if request.raw_query_string:
        attributes["url.query"] = request.raw_query_string
    if request.route_key:
        attributes["http.route"] = request.route_key
    if request.source_ip:
        attributes["client.address"] = request.source_ip
    if request.user_agent:
        attributes["user_agent.original"] = request.user_agent

    return attributes


@contextmanager
def traced_handler(
    tracer: trace.Tracer,
    completion_handler: TelemetryCompletionHandler,
    name: str,
    event: Optional[Any] = None,
    context: Optional[Any] = None,
    request: Optional[HttpApiRequest] = None,
    extracted: Optional[ExtractedContext] = None,
    attributes: Optional[Dict[str, Any]] = None,
) -> Generator[Span, None, None]:
    """Run one invocation inside a SERVER span and flush afterwards.

    Args:
        tracer: Tracer creating the invocation span
        completion_handler: Flushes the spans when the invocation ends
        name: Span name
        event: Lambda event, parsed into ``request`` when that is omitted
        context: Lambda context object
        request: Parsed HTTP API request, source of the span attributes and,
            when ``extracted`` is omitted, of the propagation headers
        extracted: Context already extracted from the inbound headers
        attributes: Extra span attributes

    Yields:
        Span: The invocation span
    """
    global _is_cold_start

    if request is None and isinstance(event, Mapping):
        request = HttpApiRequest.from_event(event)

    if extracted is None:
        extracted = extract_context(request.headers if request is not None else None)

    span_attributes = _extract_span_attributes(request, context)
    if attributes:
        span_attributes.update(attributes)

    token = context_api.attach(extracted.context)
    try:
        with tracer.start_as_current_span(
            name,
            context=extracted.context,
            kind=SpanKind.SERVER,
            attributes=span_attributes,
            record_exception=True,
            set_status_on_exception=True,
        ) as span:
            if _is_cold_start:
                span.set_attribute("faas.coldstart", True)
                _is_cold_start = False
            yield span
    finally:
        context_api.detach(token)
        completion_handler.complete()
