"""JSON GET with an overall deadline.

httpx timeouts apply per phase (connect, each read, write, pool), so a server
that trickles its body a few bytes at a time never trips them. `get_json`
streams the body and gives up once ``timeout`` seconds have passed since the
request started.
"""

from __future__ import annotations

import json
import time
from typing import Any

import httpx


def get_json(
    client: httpx.Client,
    url: str,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
) -> Any:
    """GET ``url`` and decode the body as JSON.

    Raises:
        httpx.HTTPStatusError: Non-2xx response.
        httpx.ReadTimeout: The body was not complete within ``timeout``.
        httpx.HTTPError: Any other transport failure.
        httpx.InvalidURL: ``url`` cannot be parsed.
        ValueError: The body is not valid JSON.
    """
    deadline = time.monotonic() + timeout
    with client.stream("GET", url, headers=headers, timeout=timeout) as response:
        response.raise_for_status()
        body = bytearray()
        for chunk in response.iter_bytes():
            body.extend(chunk)
            if time.monotonic() > deadline:
                raise httpx.ReadTimeout(
                    f"Response from {url} not complete within {timeout}s",
                    request=response.request,
                )
    return json.loads(body)
