"""Resource descriptor attached to every exported span."""

from __future__ import annotations

import socket
from typing import Any, Dict, Optional

from opentelemetry.sdk.resources import (
    HOST_NAME,
    SERVICE_NAME,
    ProcessResourceDetector,
    Resource,
    get_aggregated_resources,
)

from demo_client.errors import InitializationError


def build_resource(
    service_name: str,
    attributes: Optional[Dict[str, Any]] = None,
    detect_process: bool = True,
) -> Resource:
    """
    Build the process-wide resource.

    ``Resource.create`` contributes the telemetry SDK identity and anything in
    ``OTEL_RESOURCE_ATTRIBUTES``; explicit attributes win over the environment.
    Host name and process details (pid, executable, runtime) are added on top.

    Raises:
        InitializationError: If a resource detector fails
    """
    base: Dict[str, Any] = {HOST_NAME: socket.gethostname()}
    base.update(attributes or {})
    base[SERVICE_NAME] = service_name

    try:
        initial = Resource.create(base)
        if not detect_process:
            return initial
        return get_aggregated_resources(
            [ProcessResourceDetector(raise_on_error=True)],
            initial_resource=initial,
        )
    except Exception as e:
        raise InitializationError(
            "failed to create resource",
            details={"service_name": service_name, "error": e},
        ) from e
