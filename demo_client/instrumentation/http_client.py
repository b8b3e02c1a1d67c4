"""HTTP client helpers for context propagation."""

from __future__ import annotations

from typing import Any, Dict, MutableMapping, Optional
from urllib.parse import urlsplit

import requests
from opentelemetry.propagators.textmap import TextMapPropagator
from opentelemetry.trace import SpanKind

from demo_client.context.propagators import inject
from demo_client.tracer.span import SpanStatus
from demo_client.tracer.tracer import Tracer

CHUNK_SIZE = 8192


def inject_headers(
    headers: MutableMapping[str, str],
    propagator: Optional[TextMapPropagator] = None,
) -> MutableMapping[str, str]:
    """
    Inject traceparent/tracestate for the current span into the headers.

    Returns the same headers mapping for convenience.
    """
    return inject(headers, propagator=propagator)


def _request_attributes(method: str, url: str) -> Dict[str, Any]:
    attributes: Dict[str, Any] = {"http.request.method": method, "url.full": url}
    parts = urlsplit(url)
    if parts.hostname:
        attributes["server.address"] = parts.hostname
    if parts.port:
        attributes["server.port"] = parts.port
    return attributes


def send_request(
    session: requests.Session,
    tracer: Tracer,
    url: str,
    *,
    method: str = "GET",
    propagator: Optional[TextMapPropagator] = None,
    timeout: Optional[float] = None,
) -> requests.Response:
    """
    Perform one traced HTTP request.

    The request runs inside a CLIENT span that is a child of the current
    span, and that span's context is injected into the request headers.
    The response body is drained and the connection released before
    returning. Transport errors are recorded on the client span and re-raised.
    """
    with tracer.start_as_current_span(
        f"HTTP {method}",
        attributes=_request_attributes(method, url),
        kind=SpanKind.CLIENT,
    ) as span:
        headers = inject_headers({}, propagator)
        response = session.request(method, url, headers=headers, timeout=timeout, stream=True)
        try:
            span.set_attribute("http.response.status_code", response.status_code)
            if response.status_code >= 400:
                span.set_status(SpanStatus.ERROR, f"HTTP {response.status_code}")
            for _ in response.iter_content(chunk_size=CHUNK_SIZE):
                pass
        finally:
            response.close()
        return response
