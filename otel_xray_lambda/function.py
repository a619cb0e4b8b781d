"""Lambda function forwarding one traced GET request.

The handler extracts the caller's trace context from the HTTP API request
headers, runs the invocation inside a server span parented on it, calls the
configured endpoint once (the ``requests`` instrumentation injects the
current trace context and baggage into that call) and returns an empty 200
response. Spans are flushed before the handler returns.
"""

from typing import Any, Callable, Dict, Optional

import requests
from opentelemetry import trace

from .config import FunctionConfig
from .constants import Defaults
from .events import HttpApiRequest, HttpApiResponse
from .handler import traced_handler
from .logger import create_logger
from .propagation import extract_context
from .telemetry import TelemetryCompletionHandler

logger = create_logger("function")

LambdaHandler = Callable[[Dict[str, Any], Any], Dict[str, Any]]


def forward_request(
    session: requests.Session, url: str, timeout: int = Defaults.OUTBOUND_TIMEOUT
) -> requests.Response:
    """Perform the outbound GET.

    The response status is recorded on the current span; only transport
    errors propagate.
    """
    response = session.get(url, timeout=timeout)
    trace.get_current_span().set_attribute(
        "outbound.http.response.status_code", response.status_code
    )
    logger.debug(f"GET {url} returned {response.status_code}")
    return response


def create_handler(
    tracer: trace.Tracer,
    completion_handler: TelemetryCompletionHandler,
    config: FunctionConfig,
    session: Optional[requests.Session] = None,
) -> LambdaHandler:
    """Create the Lambda handler from dependencies built at process start.

    Args:
        tracer: Tracer for the invocation span
        completion_handler: Flushes spans after every invocation
        config: Function configuration
        session: HTTP session for the outbound call

    Returns:
        LambdaHandler: The ``handler(event, context)`` callable
    """
    session = session or requests.Session()

    def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
        request = HttpApiRequest.from_event(event)
        logger.debug(
            f"{request.method} {request.raw_path} body_length={len(request.body or '')} "
            f"base64={request.is_base64_encoded}"
        )
        for key, value in request.headers.items():
            logger.debug(f"{key}: {value}")

        endpoint_url = config.require_endpoint_url()

        extracted = extract_context(request.headers)
        for key, value in extracted.baggage.items():
            logger.debug(f"{key}: {value}")

        span_name = getattr(context, "function_name", None) or Defaults.SPAN_NAME
        with traced_handler(
            tracer,
            completion_handler,
            span_name,
            event=event,
            context=context,
            request=request,
            extracted=extracted,
        ) as span:
            forward_request(session, endpoint_url, timeout=config.outbound_timeout)
            response = HttpApiResponse(status_code=200)
            span.set_attribute("http.response.status_code", response.status_code)
            return response.to_dict()

    return handler
