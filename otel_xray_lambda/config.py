"""Configuration for otel-xray-lambda.

Values are read from environment variables. Invalid values are reported with a
warning and replaced by the fallback, so a typo in a tuning knob never keeps
the function from starting.
"""

import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .constants import Defaults, EnvVars
from .logger import create_logger

logger = create_logger("config")

T = TypeVar("T")


class ConfigurationError(ValueError):
    """Raised when a required configuration value is missing or invalid."""


def _raw_env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _validated(
    name: str,
    value: T,
    fallback: T,
    validator: Optional[Callable[[T], bool]],
) -> T:
    if validator is not None and not validator(value):
        logger.warn(f"Invalid value for {name}: {value!r}, using {fallback!r}")
        return fallback
    return value


def get_int_env(
    name: str,
    config_value: Optional[int] = None,
    default: int = 0,
    validator: Optional[Callable[[int], bool]] = None,
) -> int:
    """Get an integer from the environment.

    Precedence is environment variable, then ``config_value``, then ``default``.
    A value that does not parse, or that ``validator`` rejects, falls back.
    """
    fallback = config_value if config_value is not None else default
    raw = _raw_env(name)
    if raw is None:
        return fallback

    try:
        value = int(raw)
    except ValueError:
        logger.warn(f"Invalid integer for {name}: {raw!r}, using {fallback!r}")
        return fallback

    return _validated(name, value, fallback, validator)


def get_str_env(
    name: str,
    config_value: Optional[str] = None,
    default: str = "",
    validator: Optional[Callable[[str], bool]] = None,
) -> str:
    """Get a string from the environment.

    Precedence is environment variable, then ``config_value``, then ``default``.
    Surrounding whitespace is stripped and empty values count as unset.
    """
    fallback = config_value if config_value is not None else default
    raw = _raw_env(name)
    if raw is None:
        return fallback

    return _validated(name, raw, fallback, validator)


def _positive(value: int) -> bool:
    return value > 0


@dataclass(frozen=True)
class FunctionConfig:
    """Process-wide settings of the function, resolved once at startup.

    Attributes:
        service_name: Value of the ``service.name`` resource attribute
        region: AWS region used for the X-Ray endpoint and request signing
        endpoint_url: URL of the single outbound GET, empty when unset
        exporter_timeout: Timeout of one export request in seconds
        flush_timeout_millis: Upper bound for the end-of-invocation flush
        outbound_timeout: Timeout of the outbound GET in seconds
    """

    service_name: str
    region: str
    endpoint_url: str = ""
    exporter_timeout: int = Defaults.EXPORTER_TIMEOUT
    flush_timeout_millis: int = Defaults.FLUSH_TIMEOUT
    outbound_timeout: int = Defaults.OUTBOUND_TIMEOUT

    @classmethod
    def from_env(cls) -> "FunctionConfig":
        """Build the configuration from the environment."""
        service_name = get_str_env(
            EnvVars.SERVICE_NAME,
            None,
            get_str_env(
                EnvVars.OTEL_SERVICE_NAME,
                None,
                get_str_env(EnvVars.AWS_LAMBDA_FUNCTION_NAME, None, Defaults.SERVICE_NAME),
            ),
        )
        return cls(
            service_name=service_name,
            region=get_str_env(EnvVars.AWS_REGION, None, Defaults.REGION),
            endpoint_url=get_str_env(EnvVars.ENDPOINT_URL),
            exporter_timeout=get_int_env(
                EnvVars.EXPORTER_TIMEOUT, None, Defaults.EXPORTER_TIMEOUT, _positive
            ),
            flush_timeout_millis=get_int_env(
                EnvVars.FLUSH_TIMEOUT, None, Defaults.FLUSH_TIMEOUT, _positive
            ),
            outbound_timeout=get_int_env(
                EnvVars.OUTBOUND_TIMEOUT, None, Defaults.OUTBOUND_TIMEOUT, _positive
            ),
        )

    def require_endpoint_url(self) -> str:
        """Return the outbound URL, failing if it is not configured."""
        if not self.endpoint_url:
            raise ConfigurationError(
                f"{EnvVars.ENDPOINT_URL} must be set to the URL of the outbound call"
            )
        return self.endpoint_url
