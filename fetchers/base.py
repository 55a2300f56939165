"""Fetcher abstract base class.

A fetcher turns one external source into raw signals. The runtime calls
fetch() exactly once per run, under a timeout it owns. Fetchers do not
retry; a failure is reported as FetchError and the source contributes
nothing to that run.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from config import RunConfig
from core.errors import FetchError
from schemas.signal import Signal, SignalSource

logger = logging.getLogger(__name__)

USER_AGENT = "st-narrative/0.1"
DEFAULT_HTTP_TIMEOUT = 20.0


class Fetcher(ABC):
    """Base class for all source fetchers.

    Subclasses set ``name`` (unique, used for registration, timeouts and
    display panels) and ``source``, and implement fetch().

    Attributes:
        name: Fetcher name (e.g. "github").
        source: The SignalSource every emitted signal carries.
        _client: Optional injected httpx.AsyncClient. When None, a client
            is opened and closed around each fetch() call.
    """

    name: str
    source: SignalSource

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    @abstractmethod
    async def fetch(self, config: RunConfig) -> list[Signal]:
        """Collect raw signals from the source.

        Args:
            config: The immutable run configuration.

        Returns:
            Raw, unindexed signals. May be empty.

        Raises:
            FetchError: If the source cannot be read at all.
        """
        ...

    @asynccontextmanager
    async def _session(self, headers: dict | None = None) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the injected client, or a short-lived one."""
        if self._client is not None:
            yield self._client
            return
        merged = {"User-Agent": USER_AGENT, **(headers or {})}
        async with httpx.AsyncClient(
            timeout=DEFAULT_HTTP_TIMEOUT,
            headers=merged,
            follow_redirects=True,
        ) as client:
            yield client

    async def _get_json(self, client: httpx.AsyncClient, url: str, **kwargs):
        """GET a URL and decode JSON, mapping failures to FetchError."""
        response = await self._request(client, "GET", url, **kwargs)
        return self._decode(response, url)

    async def _post_json(self, client: httpx.AsyncClient, url: str, payload: dict):
        """POST a JSON payload and decode the JSON reply."""
        response = await self._request(client, "POST", url, json=payload)
        return self._decode(response, url)

    async def _get_text(self, client: httpx.AsyncClient, url: str, **kwargs) -> str:
        response = await self._request(client, "GET", url, **kwargs)
        return response.text

    async def _request(self, client: httpx.AsyncClient, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise FetchError(
                self.name, f"{method} {url} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(self.name, f"{method} {url} failed: {exc}") from exc
        return response

    def _decode(self, response: httpx.Response, url: str):
        try:
            return response.json()
        except ValueError as exc:
            raise FetchError(self.name, f"{url} returned invalid JSON") from exc
