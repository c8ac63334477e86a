from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import aiohttp

from repo_mirror.config.models import FetchSettings
from repo_mirror.mirror.errors import FetchError

logger = logging.getLogger(__name__)

_CHUNK_BYTES = 64 * 1024


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes:
        ...


class RemoteFetcher:
    """
    Single-shot HTTP GET with a fixed timeout budget per call and no retries.

    Failures raise FetchError; retry policy belongs to callers.
    """

    def __init__(self, settings: FetchSettings) -> None:
        self.settings = settings
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> RemoteFetcher:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self) -> None:
        """Open the shared HTTP session."""
        if self._session:
            return
        self._session = self._new_session()

    async def stop(self) -> None:
        """Close the shared HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def _new_session(self) -> aiohttp.ClientSession:
        timeout = aiohttp.ClientTimeout(total=self.settings.timeout_seconds)
        return aiohttp.ClientSession(
            timeout=timeout,
            headers={"User-Agent": self.settings.user_agent},
        )

    async def fetch(self, url: str) -> bytes:
        logger.debug("Fetching remote resource. url=%s", url)
        try:
            if self._session:
                return await self._get(self._session, url)
            # Outside a context manager, each call owns its session.
            async with self._new_session() as session:
                return await self._get(session, url)
        except asyncio.TimeoutError as e:
            logger.warning("Remote fetch timed out. url=%s timeout_seconds=%s", url, self.settings.timeout_seconds)
            raise FetchError("timeout", url) from e
        except aiohttp.ClientError as e:
            logger.warning("Remote fetch failed. url=%s error=%s", url, e)
            raise FetchError("network", url) from e

    async def _get(self, session: aiohttp.ClientSession, url: str) -> bytes:
        async with session.get(url) as response:
            if not 200 <= response.status < 300:
                logger.warning("Unexpected remote status. url=%s status=%s", url, response.status)
                raise FetchError("http_status", url, status=response.status)

            max_bytes = self.settings.max_bytes
            if response.content_length is not None and response.content_length > max_bytes:
                logger.warning("Remote resource too large. url=%s size=%d", url, response.content_length)
                raise FetchError("too_large", url)

            body = bytearray()
            async for chunk in response.content.iter_chunked(_CHUNK_BYTES):
                body.extend(chunk)
                if len(body) > max_bytes:
                    logger.warning("Remote resource too large. url=%s size>%d", url, max_bytes)
                    raise FetchError("too_large", url)

        logger.debug("Remote fetch succeeded. url=%s size=%d", url, len(body))
        return bytes(body)
