"""Tests for the SigV4-signed exporter transport."""

from unittest.mock import Mock, patch

import pytest
import requests
from botocore.credentials import Credentials
from botocore.exceptions import NoCredentialsError
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor, SpanExportResult
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from requests.adapters import HTTPAdapter

from otel_xray_lambda.transport import (
    SigV4Adapter,
    create_signed_session,
    create_xray_exporter,
    default_credential_resolver,
    xray_traces_endpoint,
)

ENDPOINT = "https://xray.ap-northeast-1.amazonaws.com/v1/traces"


@pytest.fixture
def credentials() -> Credentials:
    return Credentials("AKIDEXAMPLE", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY", "session-token")


@pytest.fixture
def mock_send():
    """Replace the underlying HTTP send so nothing goes on the wire."""
    response = requests.Response()
    response.status_code = 200
    response._content = b""  # pylint: disable=protected-access
    with patch.object(HTTPAdapter, "send") as mock:
        mock.return_value = response
        yield mock


def _prepared(body: bytes = b"\x0a\x02ok") -> requests.PreparedRequest:
    return requests.Request(
        "POST",
        ENDPOINT,
        data=body,
        headers={"Content-Type": "application/x-protobuf"},
    ).prepare()


def test_xray_traces_endpoint() -> None:
    """Test that the endpoint is templated on the region."""
    assert xray_traces_endpoint("ap-northeast-1") == ENDPOINT
    assert xray_traces_endpoint("eu-west-1") == "https://xray.eu-west-1.amazonaws.com/v1/traces"


def test_sign_adds_sigv4_headers(credentials: Credentials) -> None:
    """Test that signing adds the authorization, date and token headers."""
    adapter = SigV4Adapter("ap-northeast-1", credential_resolver=lambda: credentials)

    request = adapter.sign(_prepared())

    authorization = request.headers["Authorization"]
    assert authorization.startswith(
        "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/"
    )
    assert "/ap-northeast-1/xray/aws4_request" in authorization
    assert "SignedHeaders=" in authorization
    assert "host" in authorization
    assert "x-amz-date" in authorization
    assert "Signature=" in authorization
    assert request.headers["X-Amz-Date"].endswith("Z")
    assert request.headers["X-Amz-Security-Token"] == "session-token"
    assert request.headers["Content-Type"] == "application/x-protobuf"


def test_sign_without_session_token() -> None:
    """Test that long-term credentials produce no security token header."""
    adapter = SigV4Adapter(
        "us-east-1", credential_resolver=lambda: Credentials("AKIDEXAMPLE", "secret")
    )

    request = adapter.sign(_prepared())

    assert "X-Amz-Security-Token" not in request.headers
    assert "/us-east-1/xray/aws4_request" in request.headers["Authorization"]


def test_signature_covers_body(credentials: Credentials) -> None:
    """Test that different bodies produce different signatures."""
    adapter = SigV4Adapter("ap-northeast-1", credential_resolver=lambda: credentials)

    first = adapter.sign(_prepared(b"first")).headers["Authorization"]
    second = adapter.sign(_prepared(b"second")).headers["Authorization"]

    assert first.split("Signature=")[1] != second.split("Signature=")[1]


def test_custom_service_name(credentials: Credentials) -> None:
    """Test that the signing service can be changed."""
    adapter = SigV4Adapter("us-west-2", service="logs", credential_resolver=lambda: credentials)

    request = adapter.sign(_prepared())

    assert "/us-west-2/logs/aws4_request" in request.headers["Authorization"]


def test_refreshable_credentials_are_frozen(credentials: Credentials) -> None:
    """Test that credentials are snapshotted before signing."""
    refreshable = Mock()
    refreshable.get_frozen_credentials.return_value = credentials.get_frozen_credentials()
    adapter = SigV4Adapter("ap-northeast-1", credential_resolver=lambda: refreshable)

    request = adapter.sign(_prepared())

    refreshable.get_frozen_credentials.assert_called_once()
    assert "Credential=AKIDEXAMPLE/" in request.headers["Authorization"]


def test_send_signs_then_delegates(mock_send: Mock, credentials: Credentials) -> None:
    """Test that send passes the signed request to the HTTP adapter."""
    adapter = SigV4Adapter("ap-northeast-1", credential_resolver=lambda: credentials)

    response = adapter.send(_prepared(), timeout=5)

    assert response.status_code == 200
    mock_send.assert_called_once()
    sent = mock_send.call_args[0][0]
    assert sent.headers["Authorization"].startswith("AWS4-HMAC-SHA256")
    assert mock_send.call_args[1]["timeout"] == 5


def test_credentials_resolved_per_request(mock_send: Mock, credentials: Credentials) -> None:
    """Test that the credential resolver is called for every request."""
    resolver = Mock(return_value=credentials)
    adapter = SigV4Adapter("ap-northeast-1", credential_resolver=resolver)

    adapter.send(_prepared())
    adapter.send(_prepared())

    assert resolver.call_count == 2


def test_missing_credentials_abort_the_request(mock_send: Mock) -> None:
    """Test that missing credentials raise and nothing is sent."""
    adapter = SigV4Adapter("ap-northeast-1", credential_resolver=lambda: None)

    with pytest.raises(NoCredentialsError):
        adapter.send(_prepared())

    mock_send.assert_not_called()


def test_default_credential_resolver() -> None:
    """Test that the default resolver uses the botocore credential chain."""
    with patch("otel_xray_lambda.transport.BotocoreSession") as mock_session:
        resolver = default_credential_resolver()

    assert resolver is mock_session.return_value.get_credentials


def test_create_signed_session(credentials: Credentials) -> None:
    """Test that only HTTPS requests go through the signing adapter."""
    session = create_signed_session("ap-northeast-1", credential_resolver=lambda: credentials)

    adapter = session.get_adapter(ENDPOINT)
    assert isinstance(adapter, SigV4Adapter)
    assert adapter.region == "ap-northeast-1"
    assert adapter.service == "xray"
    assert not isinstance(session.get_adapter("http://localhost:4318/v1/traces"), SigV4Adapter)


def test_signed_session_post(mock_send: Mock, credentials: Credentials) -> None:
    """Test that a POST through the session arrives signed."""
    session = create_signed_session("ap-northeast-1", credential_resolver=lambda: credentials)

    session.post(ENDPOINT, data=b"payload", headers={"Content-Type": "application/x-protobuf"})

    sent = mock_send.call_args[0][0]
    assert sent.url == ENDPOINT
    assert sent.body == b"payload"
    assert "Authorization" in sent.headers


def _finished_spans():
    memory_exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(memory_exporter))
    with provider.get_tracer("test").start_as_current_span("exported"):
        pass
    provider.shutdown()
    return memory_exporter.get_finished_spans()


def test_create_xray_exporter(mock_send: Mock, credentials: Credentials) -> None:
    """Test that the exporter posts signed protobuf to the regional endpoint."""
    exporter = create_xray_exporter(
        "eu-central-1", timeout=3, credential_resolver=lambda: credentials
    )

    result = exporter.export(_finished_spans())

    assert result == SpanExportResult.SUCCESS
    mock_send.assert_called_once()
    sent = mock_send.call_args[0][0]
    assert sent.method == "POST"
    assert sent.url == "https://xray.eu-central-1.amazonaws.com/v1/traces"
    assert sent.headers["Content-Type"] == "application/x-protobuf"
    assert "/eu-central-1/xray/aws4_request" in sent.headers["Authorization"]
    assert sent.headers["X-Amz-Security-Token"] == "session-token"


def test_create_xray_exporter_with_session() -> None:
    """Test that an explicit session is used as given."""
    adapter = HTTPAdapter()
    session = requests.Session()
    session.mount("https://xray.us-east-1.amazonaws.com", adapter)
    response = requests.Response()
    response.status_code = 200
    response._content = b""  # pylint: disable=protected-access

    exporter = create_xray_exporter("us-east-1", session=session)
    with patch.object(adapter, "send", return_value=response) as mock_adapter_send:
        result = exporter.export(_finished_spans())

    assert result == SpanExportResult.SUCCESS
    mock_adapter_send.assert_called_once()
    sent = mock_adapter_send.call_args[0][0]
    assert sent.url == "https://xray.us-east-1.amazonaws.com/v1/traces"
    assert "Authorization" not in sent.headers
