"""Unit tests for the conditional fetcher."""

import asyncio

import httpx
import pytest

from knot_downloader.lib.poller.fetcher import fetch
from knot_downloader.lib.poller.types import Failed, Unchanged, Updated

URL = "https://zones.example.com/block.rpz"


@pytest.mark.asyncio
class TestFetch:
    """Tests for fetch()."""

    async def test_success_returns_updated_with_etag(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        httpx_mock.add_response(url=URL, content=b"zone A", headers={"ETag": '"t1"'})

        outcome = await fetch(client, URL)

        assert outcome == Updated(content=b"zone A", token='"t1"')

    async def test_success_without_etag_has_no_token(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        httpx_mock.add_response(url=URL, content=b"zone A")

        outcome = await fetch(client, URL)

        assert isinstance(outcome, Updated)
        assert outcome.token is None

    async def test_first_fetch_is_unconditional(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        httpx_mock.add_response(url=URL, content=b"zone A")

        await fetch(client, URL, None)

        request = httpx_mock.get_requests()[0]
        assert "If-None-Match" not in request.headers

    async def test_prior_token_sent_as_if_none_match(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        httpx_mock.add_response(url=URL, status_code=304, match_headers={"If-None-Match": '"t1"'})

        outcome = await fetch(client, URL, '"t1"')

        assert outcome == Unchanged()

    async def test_not_modified_returns_unchanged(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        httpx_mock.add_response(url=URL, status_code=304)

        assert isinstance(await fetch(client, URL, '"t1"'), Unchanged)

    async def test_changed_content_returns_new_token(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        httpx_mock.add_response(
            url=URL,
            content=b"zone B",
            headers={"ETag": '"t2"'},
            match_headers={"If-None-Match": '"t1"'},
        )

        outcome = await fetch(client, URL, '"t1"')

        assert outcome == Updated(content=b"zone B", token='"t2"')

    @pytest.mark.parametrize("status_code", [404, 500, 503])
    async def test_error_status_returns_failed(
        self,
        status_code: int,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        httpx_mock.add_response(url=URL, status_code=status_code)

        outcome = await fetch(client, URL)

        assert isinstance(outcome, Failed)
        assert f"HTTP {status_code}" in outcome.reason

    async def test_timeout_returns_failed(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        httpx_mock.add_exception(httpx.ReadTimeout("read timed out"))

        outcome = await fetch(client, URL, timeout=5.0)

        assert isinstance(outcome, Failed)
        assert "Timeout" in outcome.reason

    async def test_slow_response_hits_overall_deadline(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        async def _slow(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(2)
            return httpx.Response(200, content=b"zone A")

        httpx_mock.add_callback(_slow, url=URL)

        loop = asyncio.get_running_loop()
        started = loop.time()
        outcome = await fetch(client, URL, timeout=0.1)

        assert outcome == Failed("Timeout after 0.1s")
        assert loop.time() - started < 1

    async def test_connection_error_returns_failed(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))

        outcome = await fetch(client, URL)

        assert isinstance(outcome, Failed)
        assert "connection refused" in outcome.reason

    async def test_binary_body_preserved(
        self,
        client: httpx.AsyncClient,
        httpx_mock,  # type: ignore[no-untyped-def]
    ) -> None:
        body = b"\x00\xffzone\r\n"
        httpx_mock.add_response(url=URL, content=body)

        outcome = await fetch(client, URL)

        assert isinstance(outcome, Updated)
        assert outcome.content == body
