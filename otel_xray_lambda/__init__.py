"""OpenTelemetry tracing for an AWS Lambda function exporting to AWS X-Ray.

Spans are exported over OTLP/HTTP to the X-Ray OTLP endpoint with SigV4
signed requests. The trace context of the caller is extracted from the
inbound HTTP headers and propagated to the single outbound call.
"""

from .config import ConfigurationError, FunctionConfig
from .events import HttpApiRequest, HttpApiResponse
from .function import create_handler, forward_request
from .handler import traced_handler
from .propagation import (
    ExtractedContext,
    TraceContext,
    create_propagator,
    extract_context,
    inject_headers,
    setup_propagator,
)
from .telemetry import TelemetryCompletionHandler, get_lambda_resource, init_telemetry
from .transport import SigV4Adapter, create_signed_session, create_xray_exporter, xray_traces_endpoint

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ExtractedContext",
    "FunctionConfig",
    "HttpApiRequest",
    "HttpApiResponse",
    "SigV4Adapter",
    "TelemetryCompletionHandler",
    "TraceContext",
    "create_handler",
    "create_propagator",
    "create_signed_session",
    "create_xray_exporter",
    "extract_context",
    "forward_request",
    "get_lambda_resource",
    "init_telemetry",
    "inject_headers",
    "setup_propagator",
    "traced_handler",
]
