"""Constants for otel-xray-lambda.

Environment variable names and default values used across the package.
"""


class EnvVars:
    """Environment variable names used for configuration."""

    # Function configuration
    SERVICE_NAME = "SERVICE_NAME"
    ENDPOINT_URL = "ENDPOINT_URL"
    OUTBOUND_TIMEOUT = "OUTBOUND_TIMEOUT_SECONDS"

    # Standard OpenTelemetry variables
    OTEL_SERVICE_NAME = "OTEL_SERVICE_NAME"
    OTEL_PROPAGATORS = "OTEL_PROPAGATORS"
    EXPORTER_TIMEOUT = "OTEL_EXPORTER_TIMEOUT_SECONDS"
    FLUSH_TIMEOUT = "OTEL_FLUSH_TIMEOUT_MILLIS"

    # Lambda runtime variables
    AWS_REGION = "AWS_REGION"
    AWS_LAMBDA_FUNCTION_NAME = "AWS_LAMBDA_FUNCTION_NAME"
    AWS_LAMBDA_FUNCTION_VERSION = "AWS_LAMBDA_FUNCTION_VERSION"
    AWS_LAMBDA_LOG_STREAM_NAME = "AWS_LAMBDA_LOG_STREAM_NAME"
    AWS_LAMBDA_FUNCTION_MEMORY_SIZE = "AWS_LAMBDA_FUNCTION_MEMORY_SIZE"
    AWS_LAMBDA_REQUEST_ID = "AWS_LAMBDA_REQUEST_ID"

    # Logging
    AWS_LAMBDA_LOG_LEVEL = "AWS_LAMBDA_LOG_LEVEL"
    LOG_LEVEL = "LOG_LEVEL"


class Defaults:
    """Default values for configuration parameters."""

    SERVICE_NAME = "unknown_service"
    REGION = "ap-northeast-1"
    PROPAGATORS = "tracecontext,baggage"
    EXPORTER_TIMEOUT = 5
    FLUSH_TIMEOUT = 5000
    OUTBOUND_TIMEOUT = 10
    LOG_LEVEL = "info"

    # AWS X-Ray OTLP endpoint
    # https://docs.aws.amazon.com/AmazonCloudWatch/latest/monitoring/CloudWatch-OTLPEndpoint.html
    XRAY_ENDPOINT_TEMPLATE = "https://xray.{region}.amazonaws.com/v1/traces"
    XRAY_SIGNING_SERVICE = "xray"

    TRACER_NAME = "otel_xray_lambda"
    SPAN_NAME = "lambda-invocation"
