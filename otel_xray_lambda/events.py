"""API Gateway HTTP API (payload format 2.0) request and response records."""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from requests.structures import CaseInsensitiveDict


@dataclass
class HttpApiRequest:
    """Inbound request of an HTTP API proxy integration.

    Headers are case-insensitive; API Gateway already joins repeated headers
    with commas, so each name maps to a single value.
    """

    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: Optional[str] = None
    is_base64_encoded: bool = False
    method: str = ""
    raw_path: str = ""
    raw_query_string: str = ""
    route_key: str = ""
    source_ip: str = ""
    user_agent: str = ""

    @classmethod
    def from_event(cls, event: Optional[Mapping[str, Any]]) -> "HttpApiRequest":
        event = event or {}
        request_context = event.get("requestContext") or {}
        http = request_context.get("http") or {}
        return cls(
            headers=CaseInsensitiveDict(event.get("headers") or {}),
            body=event.get("body"),
            is_base64_encoded=bool(event.get("isBase64Encoded", False)),
            method=http.get("method", ""),
            raw_path=event.get("rawPath", ""),
            raw_query_string=event.get("rawQueryString", ""),
            route_key=event.get("routeKey", ""),
            source_ip=http.get("sourceIp", ""),
            user_agent=http.get("userAgent", ""),
        )


@dataclass
class HttpApiResponse:
    """Response of an HTTP API proxy integration."""

    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    is_base64_encoded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "body": self.body,
            "isBase64Encoded": self.is_base64_encoded,
        }
