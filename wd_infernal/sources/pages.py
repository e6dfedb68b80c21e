"""
pages.py - Web page fetching for reference mining.

HttpPageFetcher never raises for a page it could not read: the outcome is a
FetchResult whose ``error`` names the failure kind.
"""
from __future__ import annotations

import logging
from typing import Sequence

from wd_infernal.errors import AdapterError
from wd_infernal.inference.text_utils import clean_url, has_bad_fragment, html_to_text

from .http import HttpClient
from .interfaces import FetchResult

logger = logging.getLogger(__name__)

SOURCE = "pages"
TEXT_CONTENT_TYPES = ("text/", "application/xhtml", "application/xml")


class HttpPageFetcher:
    """
    Fetches a page and returns its plain text.

    Args:
        http (HttpClient): Shared session wrapper.
        bad_url_fragments (Sequence[str]): URLs containing any of these are 'blocked'.
        max_bytes (int): Page bodies are read up to this size; the rest is ignored.
    """

    def __init__(self, http: HttpClient, bad_url_fragments: Sequence[str] = (), max_bytes: int = 2_000_000):
        self.http = http
        self.bad_url_fragments = tuple(bad_url_fragments)
        self.max_bytes = max_bytes

    @classmethod
    def from_config(cls, http: HttpClient, config) -> HttpPageFetcher:
        return cls(http, config.bad_url_fragments, config.max_page_bytes)

    async def fetch_text(self, url: str) -> FetchResult:
        url = clean_url(url)
        if not url.startswith("http") or has_bad_fragment(url, self.bad_url_fragments):
            return FetchResult(url=url, error="blocked")
        try:
            response = await self.http.request(url, source=SOURCE, content_types=TEXT_CONTENT_TYPES,
                                               max_bytes=self.max_bytes)
        except AdapterError as e:
            return FetchResult(url=url, error=e.kind if e.kind in ("timeout", "network") else "network")
        if not response.ok:
            logger.debug(f"HTTP {response.status} for {url}")
            return FetchResult(url=url, error="http_error")
        content_type = response.content_type.lower()
        if not content_type or not content_type.startswith(TEXT_CONTENT_TYPES):
            logger.debug(f"Skipping {url} with content type '{content_type}'")
            return FetchResult(url=url, error="not_text")
        text = html_to_text(response.text) if "html" in content_type else response.text
        return FetchResult(url=url, text=text)
