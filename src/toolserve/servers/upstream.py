"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Blocking JSON-over-HTTP client for public upstream APIs, run off the event
loop in a worker thread.
"""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Callable, Mapping
from typing import Any

from toolserve.tools import ToolContext

logger = logging.getLogger("toolserve.servers.upstream")

USER_AGENT = "toolserve/1.0"

FetchFn = Callable[[str, float], bytes]


class UpstreamError(RuntimeError):
    """Raised when an upstream API call fails for any reason."""


def build_url(url: str, params: Mapping[str, Any] | None = None) -> str:
    if not params:
        return url
    query = urllib.parse.urlencode({k: str(v) for k, v in params.items()})
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{query}"


class UpstreamClient:
    """
    Minimal GET client used by tool handlers.

    ``fetch`` takes ``(url, timeout_s)`` and returns the raw response body;
    it defaults to ``http_get`` and is injectable for tests.
    """

    def __init__(self, fetch: FetchFn | None = None) -> None:
        self._fetch = fetch or self.http_get

    async def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        timeout_s: float,
        ctx: ToolContext | None = None,
    ) -> Any:
        if ctx is not None:
            ctx.raise_if_cancelled()

        full_url = build_url(url, params)
        logger.debug("GET %s (timeout=%ss)", full_url, timeout_s)
        try:
            raw = await asyncio.wait_for(
                asyncio.to_thread(self._fetch, full_url, timeout_s),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamError(
                f"request to {url} timed out after {timeout_s} seconds"
            ) from e
        except OSError as e:
            raise UpstreamError(f"request to {url} failed: {e}") from e

        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise UpstreamError(f"failed to parse API response: {e}") from e

    def http_get(self, url: str, timeout_s: float) -> bytes:
        req = urllib.request.Request(
            url,
            method="GET",
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout_s) as resp:  # noqa: S310
                return resp.read()
        except urllib.error.HTTPError as e:
            raise UpstreamError(f"API returned status {e.code}") from e
        except urllib.error.URLError as e:
            raise UpstreamError(f"request to {url} failed: {e.reason}") from e
        except TimeoutError as e:
            raise UpstreamError(
                f"request to {url} timed out after {timeout_s} seconds"
            ) from e
        except (OSError, http.client.HTTPException) as e:
            raise UpstreamError(f"request to {url} failed: {e}") from e
