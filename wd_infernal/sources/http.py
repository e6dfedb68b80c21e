"""
http.py - Shared aiohttp session wrapper for the source adapters.

Bounds concurrency with a semaphore, applies a per-request timeout and
translates transport failures into AdapterError.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import aiohttp

from wd_infernal.errors import AdapterError

logger = logging.getLogger(__name__)

READ_CHUNK_BYTES = 65536


def _decode(body: bytes, charset: Optional[str]) -> str:
    """Decode with the declared charset, UTF-8 when it is missing or unknown."""
    try:
        return body.decode(charset or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class HttpResponse:
    url: str
    status: int
    content_type: str
    text: str
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class HttpClient:
    """
    One aiohttp session shared by all adapters of a process.

    Args:
        user_agent (str): Sent with every request.
        timeout_seconds (float): Per-request timeout.
        max_concurrency (int): Maximum requests in flight.
        session: An existing aiohttp.ClientSession (or compatible object);
            one is created lazily when omitted.
    """

    def __init__(self, user_agent: str, timeout_seconds: float = 10, max_concurrency: int = 10, session=None):
        self.headers = {'User-Agent': user_agent}
        self.timeout_seconds = timeout_seconds
        self.session = session
        self._semaphore = asyncio.Semaphore(max_concurrency)

    @classmethod
    def from_config(cls, config) -> HttpClient:
        return cls(config.user_agent, config.http_timeout_seconds, config.http_max_concurrency)

    async def _ensure_session(self):
        """Ensure aiohttp session exists."""
        if self.session is None or getattr(self.session, 'closed', False):
            self.session = aiohttp.ClientSession(headers=self.headers)

    async def close(self):
        """Close the session."""
        if self.session and not getattr(self.session, 'closed', True):
            await self.session.close()

    async def __aenter__(self) -> HttpClient:
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def request(self, url: str, params: Optional[Dict[str, Any]] = None,
                      headers: Optional[Dict[str, str]] = None, source: str = "http",
                      content_types: Optional[Tuple[str, ...]] = None,
                      max_bytes: Optional[int] = None) -> HttpResponse:
        """
        GET a URL and read the body as text. Non-2xx statuses are returned, not raised.

        Args:
            content_types: Accepted Content-Type prefixes. For a non-2xx status
                or any other content type the body is not read and ``text`` is empty.
            max_bytes: Read at most this many bytes of the body; ``truncated``
                tells whether more was available.

        Raises:
            AdapterError: On timeout ('timeout') or transport failure ('network').
        """
        await self._ensure_session()
        request_headers = dict(self.headers)
        request_headers.update(headers or {})
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with self._semaphore:
            try:
                async with self.session.get(url, params=params, headers=request_headers, timeout=timeout) as resp:
                    final_url = str(getattr(resp, 'url', url))
                    content_type = resp.headers.get('Content-Type', '')
                    if content_types is not None and not (
                            200 <= resp.status < 300 and content_type.lower().startswith(content_types)):
                        return HttpResponse(url=final_url, status=resp.status, content_type=content_type, text="")
                    if max_bytes is None:
                        text = await resp.text()
                        return HttpResponse(url=final_url, status=resp.status, content_type=content_type, text=text)
                    body, truncated = await self._read_limited(resp, max_bytes)
                    if truncated:
                        logger.debug(f"{source}: body of {url} cut at {max_bytes} bytes")
                    return HttpResponse(url=final_url, status=resp.status, content_type=content_type,
                                        text=_decode(body, resp.charset), truncated=truncated)
            except asyncio.TimeoutError:
                logger.warning(f"{source}: timeout after {self.timeout_seconds}s for {url}")
                raise AdapterError(f"Timeout fetching {url}", source=source, kind="timeout")
            except (aiohttp.ClientError, UnicodeDecodeError) as e:
                logger.warning(f"{source}: request failed for {url}: {e}")
                raise AdapterError(f"Request failed for {url}: {e}", source=source, kind="network")

    @staticmethod
    async def _read_limited(resp, max_bytes: int) -> Tuple[bytes, bool]:
        body = bytearray()
        async for chunk in resp.content.iter_chunked(READ_CHUNK_BYTES):
            body.extend(chunk)
            if len(body) > max_bytes:
                return bytes(body[:max_bytes]), True
        return bytes(body), False

    async def get_text(self, url: str, params: Optional[Dict[str, Any]] = None,
                       headers: Optional[Dict[str, str]] = None, source: str = "http") -> str:
        """
        Raises:
            AdapterError: As ``request``, plus 'http_error' for a non-2xx status.
        """
        response = await self.request(url, params=params, headers=headers, source=source)
        if not response.ok:
            logger.warning(f"{source}: HTTP {response.status} for {url}")
            raise AdapterError(f"HTTP {response.status} for {url}", source=source, kind="http_error")
        return response.text

    async def get_json(self, url: str, params: Optional[Dict[str, Any]] = None,
                       headers: Optional[Dict[str, str]] = None, source: str = "http") -> Any:
        """
        Raises:
            AdapterError: As ``get_text``, plus 'shape' when the body is not JSON.
        """
        text = await self.get_text(url, params=params, headers=headers, source=source)
        try:
            return json.loads(text)
        except ValueError as e:
            raise AdapterError(f"Invalid JSON from {url}: {e}", source=source, kind="shape")
