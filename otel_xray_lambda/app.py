"""Lambda entry point: ``otel_xray_lambda.app.handler``.

Everything here runs once per execution environment, during the Lambda init
phase. Warm invocations reuse the tracer provider, the signed exporter
session and the outbound session.
"""

import requests
from opentelemetry.instrumentation.requests import RequestsInstrumentor

from .config import FunctionConfig
from .function import create_handler
from .telemetry import init_telemetry

config = FunctionConfig.from_env()

tracer, completion_handler = init_telemetry(config)

RequestsInstrumentor().instrument(tracer_provider=completion_handler.tracer_provider)

http_session = requests.Session()

handler = create_handler(tracer, completion_handler, config, http_session)
