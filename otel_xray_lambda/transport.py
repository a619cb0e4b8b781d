"""SigV4-signed OTLP/HTTP transport for the AWS X-Ray OTLP endpoint.

The OTLP/HTTP span exporter sends through a ``requests.Session``. Mounting
:class:`SigV4Adapter` on that session signs every export request right before
it goes on the wire, after the exporter has serialized (and possibly
compressed) the body, so the signature always covers the bytes actually sent.
"""

from typing import Any, Callable, Optional

import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import NoCredentialsError
from botocore.session import Session as BotocoreSession
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from requests.adapters import HTTPAdapter
from requests.models import PreparedRequest, Response

from .constants import Defaults
from .logger import create_logger

logger = create_logger("transport")

CredentialResolver = Callable[[], Optional[Credentials]]

# Headers produced by SigV4Auth.add_auth
SIGNATURE_HEADERS = ("Authorization", "X-Amz-Date", "X-Amz-Security-Token")


def xray_traces_endpoint(region: str) -> str:
    """Return the X-Ray OTLP traces endpoint of a region."""
    return Defaults.XRAY_ENDPOINT_TEMPLATE.format(region=region)


def default_credential_resolver() -> CredentialResolver:
    """Resolve credentials through the botocore default provider chain.

    In Lambda this picks up the execution role credentials from the
    environment. The session caches the provider, refreshable credentials are
    refreshed on access.
    """
    return BotocoreSession().get_credentials


class SigV4Adapter(HTTPAdapter):
    """Transport adapter that signs requests with AWS Signature Version 4.

    Credentials are resolved for every request. When none can be found
    ``NoCredentialsError`` is raised and the request is not sent; retrying or
    dropping the batch is left to the exporter.

    Args:
        region: Signing region
        service: Signing service name
        credential_resolver: Callable returning botocore credentials or None
    """

    def __init__(
        self,
        region: str,
        service: str = Defaults.XRAY_SIGNING_SERVICE,
        credential_resolver: Optional[CredentialResolver] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.region = region
        self.service = service
        self._credential_resolver = credential_resolver or default_credential_resolver()

    def sign(self, request: PreparedRequest) -> PreparedRequest:
        """Add the SigV4 signature headers to a prepared request."""
        credentials = self._credential_resolver()
        if credentials is None:
            raise NoCredentialsError()

        if hasattr(credentials, "get_frozen_credentials"):
            credentials = credentials.get_frozen_credentials()

        aws_request = AWSRequest(
            method=request.method,
            url=request.url,
            headers=dict(request.headers),
            data=request.body or b"",
        )
        SigV4Auth(credentials, self.service, self.region).add_auth(aws_request)

        for name in SIGNATURE_HEADERS:
            if name in aws_request.headers:
                request.headers[name] = aws_request.headers[name]

        logger.debug(f"Signed {request.method} {request.url} for {self.service}/{self.region}")
        return request

    def send(self, request: PreparedRequest, **kwargs: Any) -> Response:
        return super().send(self.sign(request), **kwargs)


def create_signed_session(
    region: str,
    service: str = Defaults.XRAY_SIGNING_SERVICE,
    credential_resolver: Optional[CredentialResolver] = None,
) -> requests.Session:
    """Create a session whose HTTPS requests are SigV4-signed."""
    session = requests.Session()
    session.mount(
        "https://",
        SigV4Adapter(region, service=service, credential_resolver=credential_resolver),
    )
    return session


def create_xray_exporter(
    region: str,
    timeout: int = Defaults.EXPORTER_TIMEOUT,
    session: Optional[requests.Session] = None,
    credential_resolver: Optional[CredentialResolver] = None,
) -> OTLPSpanExporter:
    """Create an OTLP/HTTP (protobuf) span exporter for the X-Ray endpoint.

    Args:
        region: AWS region of the endpoint and the signature
        timeout: Export request timeout in seconds
        session: Session to export with, a signed session when omitted
        credential_resolver: Credential resolver for the signed session

    Returns:
        OTLPSpanExporter: The configured exporter
    """
    return OTLPSpanExporter(
        endpoint=xray_traces_endpoint(region),
        timeout=timeout,
        session=session or create_signed_session(region, credential_resolver=credential_resolver),
    )
