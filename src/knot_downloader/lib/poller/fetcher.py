"""Conditional HTTP fetch for a single zone file.

Uses a shared httpx AsyncClient. Network problems are reported as a
``Failed`` outcome rather than raised, so one bad source never disturbs
the scheduler.
"""

import asyncio

import httpx
from loguru import logger

from knot_downloader.lib.poller.types import Failed, FetchOutcome, Unchanged, Updated


async def fetch(
    client: httpx.AsyncClient,
    url: str,
    prior_token: str | None = None,
    *,
    timeout: float = 30.0,
) -> FetchOutcome:
    """Fetch a resource, sending ``If-None-Match`` when a token is known.

    A single attempt is made; the next scheduled tick is the retry.

    Args:
        client: HTTP client used for the request.
        url: Remote resource URL.
        prior_token: Entity tag from the last successful fetch, or None.
        timeout: Upper bound in seconds for the whole request, including
            reading the body.

    Returns:
        ``Unchanged`` on 304, ``Updated`` with the body and the response
        ETag on 2xx, ``Failed`` otherwise.
    """
    headers = {}
    if prior_token is not None:
        headers["If-None-Match"] = prior_token

    try:
        async with asyncio.timeout(timeout):
            logger.debug("Fetching {} (conditional={})", url, prior_token is not None)
            response = await client.get(url, headers=headers, timeout=timeout)
    except (httpx.TimeoutException, TimeoutError):
        return Failed(f"Timeout after {timeout:g}s")
    except httpx.HTTPError as exc:
        return Failed(f"HTTP error: {exc}")

    if response.status_code == httpx.codes.NOT_MODIFIED:
        return Unchanged()

    if not response.is_success:
        return Failed(f"HTTP {response.status_code} {response.reason_phrase}".rstrip())

    return Updated(content=response.content, token=response.headers.get("ETag"))
