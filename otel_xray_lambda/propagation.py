"""Trace context propagation for otel-xray-lambda.

Extraction turns the inbound header map of an invocation into an
:class:`ExtractedContext`: the OpenTelemetry ``Context`` that parents the
invocation span, the remote parent it carries (if any) and the baggage that
came with it. Extraction always starts from an empty ``Context`` so a warm
process never reuses values from a previous invocation.

The propagation format is chosen with ``OTEL_PROPAGATORS`` and defaults to
W3C ``traceparent``/``tracestate`` plus W3C ``baggage``.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set

from opentelemetry import baggage
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.context import Context
from opentelemetry.propagate import get_global_textmap, set_global_textmap
from opentelemetry.propagators.aws import AwsXRayPropagator
from opentelemetry.propagators.aws.aws_xray_propagator import AwsXRayLambdaPropagator
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.propagators.textmap import (
    CarrierT,
    Getter,
    Setter,
    TextMapPropagator,
    default_getter,
    default_setter,
)
from opentelemetry.trace import SpanContext, get_current_span
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from requests.structures import CaseInsensitiveDict

from .config import get_str_env
from .constants import Defaults, EnvVars
from .logger import create_logger

logger = create_logger("propagation")


@dataclass(frozen=True)
class TraceContext:
    """Remote parent extracted from inbound headers.

    Attributes:
        trace_id: 128-bit trace id as 32 lowercase hex characters
        span_id: 64-bit span id as 16 lowercase hex characters
        sampled: Whether the caller sampled the trace
    """

    trace_id: str
    span_id: str
    sampled: bool

    @classmethod
    def from_span_context(cls, span_context: SpanContext) -> "TraceContext":
        return cls(
            trace_id=format(span_context.trace_id, "032x"),
            span_id=format(span_context.span_id, "016x"),
            sampled=span_context.trace_flags.sampled,
        )


@dataclass(frozen=True)
class ExtractedContext:
    """Result of extracting propagation headers for one invocation.

    Attributes:
        context: OpenTelemetry context holding the remote parent and baggage
        parent: The remote parent, ``None`` when the invocation starts a new trace
        baggage: Baggage entries in the order they were received
    """

    context: Context = field(default_factory=Context)
    parent: Optional[TraceContext] = None
    baggage: Dict[str, str] = field(default_factory=dict)

    @property
    def is_root(self) -> bool:
        return self.parent is None


class HeaderGetter(Getter[CarrierT]):
    """Getter for HTTP header maps.

    Lookups are case-insensitive when the carrier is a
    ``CaseInsensitiveDict``. Missing, ``None`` and empty values are all
    reported as absent so an empty ``traceparent`` behaves like no header.
    """

    def get(self, carrier: CarrierT, key: str) -> Optional[List[str]]:
        value = carrier.get(key)
        if isinstance(value, (list, tuple)):
            value = next((item for item in value if item), None)
        if not value:
            return None
        return [str(value)]

    def keys(self, carrier: CarrierT) -> List[str]:
        return list(carrier.keys())


header_getter = HeaderGetter()


def has_valid_span(context: Context) -> bool:
    """Check whether a context carries a span with both ids set."""
    span = get_current_span(context)
    if span is None:
        return False
    span_context = span.get_span_context()
    return bool(span_context and span_context.trace_id and span_context.span_id)


class NoopPropagator(TextMapPropagator):
    """Propagator that neither extracts nor injects anything."""

    def extract(
        self,
        carrier: CarrierT,
        context: Optional[Context] = None,
        getter: Getter[CarrierT] = default_getter,
    ) -> Context:
        return context if context is not None else Context()

    def inject(
        self,
        carrier: CarrierT,
        context: Optional[Context] = None,
        setter: Setter[CarrierT] = default_setter,
    ) -> None:
        return None

    @property
    def fields(self) -> Set[str]:
        return set()


class LambdaXRayPropagator(AwsXRayLambdaPropagator):
    """X-Ray propagator with a fallback to the Lambda trace header.

    The base class falls back to ``_X_AMZN_TRACE_ID`` whenever the incoming
    context holds no span, even if the carrier has a valid
    ``X-Amzn-Trace-Id``. Here the carrier wins, and the environment is only
    consulted when the carrier yields no valid span.
    """

    def extract(
        self,
        carrier: CarrierT,
        context: Optional[Context] = None,
        getter: Getter[CarrierT] = default_getter,
    ) -> Context:
        ctx = AwsXRayPropagator.extract(self, carrier, context=context, getter=getter)
        if has_valid_span(ctx):
            return ctx

        logger.debug("No X-Ray header in carrier, trying the Lambda trace header")
        return super().extract(carrier, context=context, getter=getter)


_PROPAGATORS: Dict[str, Callable[[], TextMapPropagator]] = {
    "tracecontext": TraceContextTextMapPropagator,
    "baggage": W3CBaggagePropagator,
    "xray": AwsXRayPropagator,
    "xray-lambda": LambdaXRayPropagator,
}


def create_propagator() -> TextMapPropagator:
    """Create the propagator named by ``OTEL_PROPAGATORS``.

    Unknown names are skipped with a warning; ``none`` disables propagation.

    Returns:
        TextMapPropagator: The configured propagator
    """
    names = [
        name.strip().lower()
        for name in get_str_env(EnvVars.OTEL_PROPAGATORS, None, Defaults.PROPAGATORS).split(",")
        if name.strip()
    ]

    if "none" in names:
        return NoopPropagator()

    propagators: List[TextMapPropagator] = []
    for name in names:
        factory = _PROPAGATORS.get(name)
        if factory is None:
            logger.warn(f"Unknown propagator {name!r}, skipping")
            continue
        propagators.append(factory())

    if not propagators:
        logger.warn("No valid propagators configured, using defaults")
        propagators = [TraceContextTextMapPropagator(), W3CBaggagePropagator()]

    return CompositePropagator(propagators)


def setup_propagator(
    propagators: Optional[List[TextMapPropagator]] = None,
) -> TextMapPropagator:
    """Install the global text map propagator.

    Outbound ``requests`` calls are injected through the global propagator, so
    this must run before the first invocation.

    Args:
        propagators: Explicit propagators; ``OTEL_PROPAGATORS`` is used when omitted

    Returns:
        TextMapPropagator: The installed propagator
    """
    propagator = CompositePropagator(propagators) if propagators else create_propagator()
    set_global_textmap(propagator)
    return propagator


def extract_context(
    headers: Optional[Mapping],
    propagator: Optional[TextMapPropagator] = None,
) -> ExtractedContext:
    """Extract the parent trace context and baggage from inbound headers.

    Never raises for bad input: headers that do not parse are ignored by the
    propagators, and an unexpected propagator failure degrades to a new root
    trace with empty baggage.

    Args:
        headers: Inbound header map, matched case-insensitively
        propagator: Propagator to use, the global one when omitted

    Returns:
        ExtractedContext: Context, remote parent and baggage for the invocation
    """
    carrier = headers if isinstance(headers, CaseInsensitiveDict) else CaseInsensitiveDict(headers or {})
    propagator = propagator or get_global_textmap()

    try:
        ctx = propagator.extract(carrier, context=Context(), getter=header_getter)
    except Exception as e:
        logger.warn(f"Failed to extract trace context from headers: {e}")
        ctx = Context()

    span_context = get_current_span(ctx).get_span_context()
    parent = TraceContext.from_span_context(span_context) if span_context.is_valid else None

    return ExtractedContext(
        context=ctx,
        parent=parent,
        baggage={str(key): str(value) for key, value in baggage.get_all(ctx).items()},
    )


def inject_headers(
    headers: Optional[Mapping[str, str]] = None,
    context: Optional[Context] = None,
    propagator: Optional[TextMapPropagator] = None,
) -> Dict[str, str]:
    """Inject the trace context and baggage into a copy of ``headers``."""
    carrier: Dict[str, str] = dict(headers or {})
    (propagator or get_global_textmap()).inject(carrier, context=context)
    return carrier
