"""Tests for the generation job driver, against httpx.MockTransport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from fluxy.generate.driver import JobDriver
from fluxy.generate.models import SCHNELL
from fluxy.generate.types import (
    Failure,
    FailureKind,
    GenerationRequest,
    ImageReady,
    JobHandle,
    JobState,
    JobStatus,
)

from .images import make_image

GET_URL = "https://api.replicate.com/v1/predictions/p123"
OUTPUT_URL = "https://replicate.delivery/out-0.png"


async def _no_sleep(_: float) -> None:
    return None


class FakeReplicate:
    """Scripted stand-in for the predictions API and its CDN."""

    def __init__(
        self,
        statuses: list[dict],
        image: bytes = b"",
        submit_status: int = 201,
        submit_body: dict | None = None,
        fetch_status: int = 200,
    ) -> None:
        self.statuses = list(statuses)
        self.image = image
        self.submit_status = submit_status
        self.submit_body = submit_body
        self.fetch_status = fetch_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if request.method == "POST":
            body = self.submit_body or {
                "id": "p123",
                "status": "starting",
                "urls": {"get": GET_URL},
            }
            return httpx.Response(self.submit_status, json=body)
        if url == GET_URL:
            return httpx.Response(200, json=self.statuses.pop(0))
        if url == OUTPUT_URL:
            return httpx.Response(self.fetch_status, content=self.image)
        return httpx.Response(404, json={"detail": "not found"})

    @property
    def polls(self) -> int:
        return sum(1 for r in self.requests if str(r.url) == GET_URL)


def _driver(fake: FakeReplicate, **kwargs) -> JobDriver:
    return JobDriver(
        "r8_test",
        transport=httpx.MockTransport(fake),
        sleep=_no_sleep,
        **kwargs,
    )


def _request(prompt: str = "a red fox") -> GenerationRequest:
    return GenerationRequest(prompt=prompt, variant=SCHNELL)


class TestSuccessfulJob:
    @pytest.mark.asyncio
    async def test_submit_poll_fetch(self) -> None:
        png = make_image(8, 8)
        fake = FakeReplicate(
            [
                {"status": "processing"},
                {"status": "processing"},
                {"status": "succeeded", "output": [OUTPUT_URL]},
            ],
            image=png,
        )
        result = await _driver(fake).run(_request())

        assert isinstance(result, ImageReady)
        assert result.data == png
        assert result.url == OUTPUT_URL
        assert fake.polls == 3

    @pytest.mark.asyncio
    async def test_request_body_and_auth(self) -> None:
        fake = FakeReplicate([{"status": "succeeded", "output": OUTPUT_URL}], image=b"img")
        await _driver(fake).run(_request())

        submit = fake.requests[0]
        assert submit.method == "POST"
        assert submit.headers["Authorization"] == "Bearer r8_test"
        assert json.loads(submit.content) == {
            "input": {
                "prompt": "a red fox",
                "aspect_ratio": "1:1",
                "output_format": "png",
                "output_quality": 100,
                "disable_safety_checker": True,
            }
        }

    @pytest.mark.asyncio
    async def test_image_fetch_has_no_credentials(self) -> None:
        fake = FakeReplicate([{"status": "succeeded", "output": OUTPUT_URL}], image=b"img")
        await _driver(fake).run(_request())
        fetch = fake.requests[-1]
        assert str(fetch.url) == OUTPUT_URL
        assert "Authorization" not in fetch.headers

    @pytest.mark.asyncio
    async def test_already_succeeded_on_submit_skips_polling(self) -> None:
        fake = FakeReplicate(
            [],
            image=b"img",
            submit_body={
                "id": "p1",
                "status": "succeeded",
                "output": OUTPUT_URL,
                "urls": {"get": GET_URL},
            },
        )
        result = await _driver(fake).run(_request())
        assert isinstance(result, ImageReady)
        assert fake.polls == 0

    @pytest.mark.asyncio
    async def test_poll_interval_is_used(self) -> None:
        slept: list[float] = []

        async def record(seconds: float) -> None:
            slept.append(seconds)

        fake = FakeReplicate(
            [{"status": "processing"}, {"status": "succeeded", "output": OUTPUT_URL}],
            image=b"img",
        )
        driver = JobDriver(
            "r8_test",
            poll_interval=0.5,
            transport=httpx.MockTransport(fake),
            sleep=record,
        )
        await driver.run(_request())
        assert slept == [0.5, 0.5]


class TestFailures:
    @pytest.mark.asyncio
    async def test_remote_failure(self) -> None:
        fake = FakeReplicate([{"status": "failed", "error": "NSFW content detected"}])
        result = await _driver(fake).run(_request())
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.REMOTE
        assert "NSFW content detected" in result.message

    @pytest.mark.asyncio
    async def test_missing_token_makes_no_network_calls(self) -> None:
        fake = FakeReplicate([])
        driver = JobDriver(None, transport=httpx.MockTransport(fake), sleep=_no_sleep)
        result = await driver.run(_request())
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.CONFIGURATION
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_empty_prompt_is_rejected_locally(self) -> None:
        fake = FakeReplicate([])
        result = await _driver(fake).run(_request("   "))
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.CONFIGURATION
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_http_error_on_submit(self) -> None:
        fake = FakeReplicate(
            [],
            submit_status=401,
            submit_body={"detail": "You did not pass a valid authentication token"},
        )
        result = await _driver(fake).run(_request())
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.TRANSPORT
        assert "401" in result.message
        assert "valid authentication token" in result.message

    @pytest.mark.asyncio
    async def test_submit_without_status_url(self) -> None:
        fake = FakeReplicate([], submit_body={"id": "p1", "status": "starting"})
        result = await _driver(fake).run(_request())
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.TRANSPORT
        assert "status URL" in result.message

    @pytest.mark.asyncio
    async def test_unexpected_output_shape(self) -> None:
        fake = FakeReplicate([{"status": "succeeded", "output": [42]}])
        result = await _driver(fake).run(_request())
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.TRANSPORT
        assert "unexpected output" in result.message

    @pytest.mark.asyncio
    async def test_success_without_output_url_is_a_failure(self) -> None:
        fake = FakeReplicate([])
        driver = _driver(fake)

        async def succeeded_without_url(client: httpx.AsyncClient, handle: JobHandle) -> JobStatus:
            return JobStatus(JobState.SUCCEEDED)

        driver.poll = succeeded_without_url  # type: ignore[method-assign]
        result = await driver.run(_request())
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.TRANSPORT
        assert "without an output URL" in result.message

    @pytest.mark.asyncio
    async def test_fetch_error(self) -> None:
        fake = FakeReplicate(
            [{"status": "succeeded", "output": OUTPUT_URL}], fetch_status=403
        )
        result = await _driver(fake).run(_request())
        assert isinstance(result, Failure)
        assert "HTTP 403" in result.message

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        driver = JobDriver("r8_test", transport=httpx.MockTransport(refuse), sleep=_no_sleep)
        result = await driver.run(_request())
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.TRANSPORT
        assert "connection refused" in result.message

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        def html(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>gateway</html>")

        driver = JobDriver("r8_test", transport=httpx.MockTransport(html), sleep=_no_sleep)
        result = await driver.run(_request())
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.TRANSPORT
        assert "decoding response" in result.message

    @pytest.mark.asyncio
    async def test_timeout_watchdog(self) -> None:
        fake = FakeReplicate([{"status": "processing"}] * 1000)

        async def slow_sleep(_: float) -> None:
            await asyncio.sleep(0.01)

        driver = JobDriver(
            "r8_test",
            timeout=0.05,
            transport=httpx.MockTransport(fake),
            sleep=slow_sleep,
        )
        result = await driver.run(_request())
        assert isinstance(result, Failure)
        assert result.kind is FailureKind.TIMEOUT
