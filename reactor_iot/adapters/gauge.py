"""HTTP client for the temperature gauge API."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .. import constants

LOGGER = logging.getLogger(__name__)


class GaugeTransportError(RuntimeError):
    """Raised when the gauge API cannot be reached."""


@dataclass(slots=True)
class GaugeResult:
    url: str
    status: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class GaugeClient:
    """Pushes rounded temperatures to ``{base_url}/api/Values/{value}``.

    One session is shared across calls so concurrent relay invocations reuse
    the connection pool.
    """

    def __init__(
        self,
        base_url: str = constants.DEFAULT_GAUGE_BASE_URL,
        *,
        timeout_seconds: float = constants.DEFAULT_GAUGE_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    def url_for(self, value: int) -> str:
        return f"{self.base_url}/api/Values/{value}"

    async def push_temperature(self, value: int) -> GaugeResult:
        url = self.url_for(value)
        session = self._ensure_session()

        try:
            async with session.get(
                url, timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            ) as response:
                await response.read()
                return GaugeResult(url=url, status=response.status)
        except asyncio.TimeoutError as exc:
            raise GaugeTransportError(
                f"Gauge API timed out after {self.timeout_seconds}s: {url}"
            ) from exc
        except aiohttp.ClientError as exc:
            raise GaugeTransportError(f"Gauge API request failed: {exc}") from exc

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session
