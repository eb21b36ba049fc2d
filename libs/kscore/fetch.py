"""Async audio fetching over HTTP built on HTTPX.

No retries: a failed fetch surfaces immediately and the caller owns any
retry policy.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from .config import get_settings
from .errors import AudioFetchError

logger = logging.getLogger(__name__)


class AudioSource(Protocol):
    """Anything that can turn a source identity into encoded audio bytes."""

    async def fetch(self, url: str) -> bytes: ...


class HttpAudioSource:
    """Fetch audio payloads with httpx.AsyncClient.

    Args:
        timeout: Request timeout in seconds (defaults to KS_FETCH_TIMEOUT)
        max_bytes: Largest accepted payload (defaults to KS_MAX_AUDIO_BYTES)
        transport: Optional custom transport (useful for testing)
    """

    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        max_bytes: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        s = get_settings()
        self.timeout = timeout if timeout is not None else s.KS_FETCH_TIMEOUT
        self.max_bytes = max_bytes if max_bytes is not None else s.KS_MAX_AUDIO_BYTES
        self._transport = transport

    async def fetch(self, url: str) -> bytes:
        if not url.startswith(("http://", "https://")):
            raise AudioFetchError(f"Unsupported audio URL: {url!r}", source=url)
        # InvalidURL is not an httpx.HTTPError
        try:
            target = httpx.URL(url)
        except httpx.InvalidURL as e:
            raise AudioFetchError(f"Invalid audio URL: {e}", source=url) from e

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=min(5.0, self.timeout)),
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            try:
                async with client.stream("GET", target) as resp:
                    if not resp.is_success:
                        raise AudioFetchError(
                            f"Failed to fetch audio ({resp.status_code})",
                            source=url,
                            status_code=resp.status_code,
                        )
                    chunks = []
                    size = 0
                    async for chunk in resp.aiter_bytes():
                        size += len(chunk)
                        if size > self.max_bytes:
                            raise AudioFetchError(
                                f"Audio payload exceeds {self.max_bytes} bytes",
                                source=url,
                                status_code=resp.status_code,
                            )
                        chunks.append(chunk)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.warning(f"Audio fetch failed for {url}: {e}", extra={"source": url})
                raise AudioFetchError(f"Failed to fetch audio: {e}", source=url) from e

        logger.debug(f"Fetched {size} bytes from {url}")
        return b"".join(chunks)


__all__ = ["AudioSource", "HttpAudioSource"]
