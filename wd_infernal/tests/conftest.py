"""
Pytest fixtures for source adapter tests: a scripted HttpClient stand-in.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from wd_infernal.sources.http import HttpResponse


class ScriptedHttp:
    """
    Answers get_json/get_text/request from a handler ``(url, params) -> response``.

    The handler may return a value, or raise to simulate a failure.
    """

    def __init__(self, handler: Callable[[str, Dict[str, Any]], Any]):
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    def _call(self, url: str, params: Optional[Dict[str, Any]], headers: Optional[Dict[str, str]], source: str):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {}),
                           "source": source})
        return self.handler(url, dict(params or {}))

    async def get_json(self, url, params=None, headers=None, source="http"):
        return self._call(url, params, headers, source)

    async def get_text(self, url, params=None, headers=None, source="http"):
        return self._call(url, params, headers, source)

    async def request(self, url, params=None, headers=None, source="http") -> HttpResponse:
        return self._call(url, params, headers, source)


@pytest.fixture
def scripted_http():
    """Factory for a ScriptedHttp with a given handler."""
    return ScriptedHttp
