"""Shared fixtures for otel-xray-lambda tests."""

import os
from collections.abc import Generator
from unittest.mock import patch

import pytest
from opentelemetry import trace
from opentelemetry.util._once import Once


@pytest.fixture
def mock_env() -> Generator[None, None, None]:
    """Provide a clean environment and an unset global tracer provider."""
    # Clear any existing tracer provider
    trace._TRACER_PROVIDER = None  # pylint: disable=protected-access
    trace._TRACER_PROVIDER_SET_ONCE = Once()  # pylint: disable=protected-access
    with patch.dict(os.environ, {}, clear=True):
        yield
