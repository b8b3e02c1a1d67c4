"""The request loop: one traced outbound request per iteration."""

from __future__ import annotations

import logging
import threading
from typing import Optional

import requests
from opentelemetry.context import Context

from demo_client.auto import Telemetry
from demo_client.correlation import with_correlation
from demo_client.errors import RequestError
from demo_client.instrumentation.http_client import send_request
from demo_client.tracer.span import Span

logger = logging.getLogger(__name__)

REQUEST_FINISHED_EVENT = "successfully finished request operation"


def record_request_finished(span: Span, response: requests.Response) -> None:
    """Record the completion event on a span whose request succeeded."""
    span.add_event(
        REQUEST_FINISHED_EVENT,
        attributes={
            "request.url": response.url or "",
            "http.response.status_code": response.status_code,
        },
    )


class RequestLoop:
    """
    Sends one GET to the configured server per iteration.

    Each iteration is a new trace: an ``ExecuteRequest`` span wraps the
    request, gets a completion event when the request succeeds, and ends
    before the loop waits ``request_interval`` seconds. Transport failures
    mark the span as failed and the loop moves on, unless ``fail_fast`` is
    set, in which case RequestError is raised after the span has ended.
    """

    def __init__(self, telemetry: Telemetry, session: Optional[requests.Session] = None) -> None:
        self.telemetry = telemetry
        self.config = telemetry.config
        self._session = session
        self._owns_session = session is None
        self.iterations = 0
        self.failures = 0

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def run_once(self) -> bool:
        """
        Run one Idle -> InFlight -> Idle cycle, without the trailing wait.

        Returns True if the request succeeded.

        Raises:
            RequestError: If the request failed and fail_fast is set
        """
        url = self.config.server_endpoint
        self.iterations += 1
        failure: Optional[requests.RequestException] = None

        # Empty context: every iteration starts a fresh trace
        with self.telemetry.tracer.start_as_current_span(
            self.config.operation_name,
            context=Context(),
        ) as span:
            log = with_correlation(span, logger)
            try:
                response = send_request(
                    self.session,
                    self.telemetry.tracer,
                    url,
                    propagator=self.telemetry.propagator,
                    timeout=self.config.request_timeout,
                )
            except requests.RequestException as e:
                failure = e
                span.record_exception(e)
                log.error("Request to %s failed: %s", url, e)
            else:
                record_request_finished(span, response)
                log.info("Request to %s finished with status %d", url, response.status_code)

        if failure is None:
            return True
        self.failures += 1
        if self.config.fail_fast:
            raise RequestError("failed to send request", details={"url": url, "error": failure}) from failure
        return False

    def run(self, stop_event: Optional[threading.Event] = None, max_iterations: Optional[int] = None) -> int:
        """
        Loop until ``stop_event`` is set or ``max_iterations`` is reached.

        The wait between iterations returns early when the stop event fires.
        Returns the number of iterations run.
        """
        stop_event = stop_event or threading.Event()
        ran = 0
        try:
            while not stop_event.is_set() and (max_iterations is None or ran < max_iterations):
                self.run_once()
                ran += 1
                if max_iterations is not None and ran >= max_iterations:
                    break
                stop_event.wait(self.config.request_interval)
        finally:
            if self._owns_session and self._session is not None:
                self._session.close()
                self._session = None
        return ran
