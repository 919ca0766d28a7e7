"""Generation job driver: submit, poll until terminal, fetch the image.

Uses raw HTTP via httpx against Replicate's predictions API. The public
entry point, :meth:`JobDriver.run`, never raises: every failure comes back
as a :class:`~fluxy.generate.types.Failure` value so the UI loop can treat
completions uniformly.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable

import httpx

from fluxy.errors import (
    ConfigurationError,
    JobTimeoutError,
    RemoteJobFailure,
    TransportError,
    UnexpectedResponseError,
)
from fluxy.generate.models import build_request_body
from fluxy.generate.types import (
    Failure,
    FailureKind,
    GenerationRequest,
    ImageReady,
    JobHandle,
    JobResult,
    JobState,
    JobStatus,
    Prediction,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0

SleepFn = Callable[[float], Awaitable[Any]]


class JobDriver:
    """Runs one generation job per call to :meth:`run`.

    ``transport`` and ``sleep`` exist so tests can substitute an
    ``httpx.MockTransport`` and a no-op sleep.
    """

    def __init__(
        self,
        token: str | None,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._token = token
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._transport = transport
        self._sleep = sleep

    # -- public -------------------------------------------------------------

    async def run(self, request: GenerationRequest) -> JobResult:
        """Generate one image, returning the bytes or a failure value."""
        try:
            if self._timeout is not None:
                try:
                    return await asyncio.wait_for(self.generate(request), self._timeout)
                except asyncio.TimeoutError:
                    raise JobTimeoutError(
                        f"generation did not finish within {self._timeout:g}s"
                    ) from None
            return await self.generate(request)
        except ConfigurationError as exc:
            return Failure(FailureKind.CONFIGURATION, str(exc))
        except RemoteJobFailure as exc:
            logger.warning("Remote job failed: %s", exc.reason)
            return Failure(FailureKind.REMOTE, str(exc))
        except JobTimeoutError as exc:
            logger.warning("%s", exc)
            return Failure(FailureKind.TIMEOUT, str(exc))
        except TransportError as exc:
            logger.warning("Transport error: %s", exc)
            return Failure(FailureKind.TRANSPORT, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error during generation")
            return Failure(FailureKind.TRANSPORT, f"unexpected error: {exc}")

    async def generate(self, request: GenerationRequest) -> ImageReady:
        """Submit, poll and fetch; raises on any failure."""
        if not self._token:
            raise ConfigurationError(
                "no API token (pass --token or set REPLICATE_API_TOKEN)"
            )
        if not request.prompt.strip():
            raise ConfigurationError("prompt must not be empty")

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, connect=30.0),
            transport=self._transport,
        ) as client:
            handle, status = await self.submit(client, request)
            polls = 0
            while not status.is_terminal:
                await self._sleep(self._poll_interval)
                status = await self.poll(client, handle)
                polls += 1
                logger.debug("Polled %s (%d): %s", handle.id, polls, status.state.value)

            if status.state is JobState.FAILED:
                raise RemoteJobFailure(status.error or "unknown error")

            if status.output_url is None:
                raise UnexpectedResponseError("prediction succeeded without an output URL")
            data = await self.fetch(client, status.output_url)
            logger.debug("Fetched %d bytes from %s", len(data), status.output_url)
            return ImageReady(data=data, url=status.output_url)

    async def submit(
        self, client: httpx.AsyncClient, request: GenerationRequest
    ) -> tuple[JobHandle, JobStatus]:
        body = build_request_body(
            request.prompt,
            request.variant,
            request.aspect_ratio,
            request.output_format,
        )
        url = request.variant.predictions_url
        logger.debug("Submitting to %s: %s", url, json.dumps(body))

        response = await self._send(client, "POST", url, json=body)
        prediction = Prediction.parse(_decode_json(response))

        get_url = prediction.urls.get("get")
        if not get_url:
            raise UnexpectedResponseError("prediction response has no status URL")

        handle = JobHandle(id=prediction.id, get_url=get_url)
        logger.info("Submitted prediction %s (%s)", handle.id, request.variant.name)
        return handle, JobStatus.from_prediction(prediction)

    async def poll(self, client: httpx.AsyncClient, handle: JobHandle) -> JobStatus:
        response = await self._send(client, "GET", handle.get_url)
        return JobStatus.from_response(_decode_json(response))

    async def fetch(self, client: httpx.AsyncClient, url: str) -> bytes:
        # Output assets are served from a CDN: no credentials attached
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            raise TransportError(f"error fetching image: {exc}") from exc
        if response.status_code >= 400:
            raise UnexpectedResponseError(
                f"error fetching image: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return response.content

    # -- private ------------------------------------------------------------

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._token}"}
        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"error sending request: {exc}") from exc

        if response.status_code >= 400:
            raise UnexpectedResponseError(
                f"HTTP {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        return response


def _decode_json(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as exc:
        raise UnexpectedResponseError(f"error decoding response: {exc}") from exc
    if not isinstance(body, dict):
        raise UnexpectedResponseError("response body is not a JSON object")
    return body


def _error_detail(response: httpx.Response) -> str:
    """Pull the human-readable message out of an API error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        for key in ("detail", "title", "error"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase
