"""
Pytest fixtures for inference tests: in-memory fakes of every source.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

import pytest

from wd_infernal.errors import AdapterError
from wd_infernal.inference.config import InferenceConfig
from wd_infernal.inference.model import (
    P_END_TIME, P_START_TIME, ItemValue, Qualifier, Reference, Statement, TimeValue, Value,
)
from wd_infernal.sources.interfaces import (
    AuthorityRecord, FetchResult, Labels, NearbyMatch, ProviderField, Sources,
)


def interval(start: Optional[int] = None, end: Optional[int] = None) -> Tuple[Qualifier, ...]:
    """P580/P582 year qualifiers."""
    qualifiers = []
    if start is not None:
        qualifiers.append(Qualifier(P_START_TIME, TimeValue.from_year(start)))
    if end is not None:
        qualifiers.append(Qualifier(P_END_TIME, TimeValue.from_year(end)))
    return tuple(qualifiers)


class FakeGraph:
    """GraphLookup backed by dicts. Keys in ``failing`` raise AdapterError."""

    def __init__(self):
        self.statements: Dict[str, List[Statement]] = {}
        self.labels: Dict[str, Labels] = {}
        self.search: Dict[str, List[str]] = {}
        self.nearby: List[NearbyMatch] = []
        self.failing: Set[str] = set()
        self.calls: List[tuple] = []

    def add(self, item: str, property: str, value: Union[str, Value], qualifiers: Sequence[Qualifier] = (),
            rank: str = "normal", references: Sequence[Reference] = (), id: Optional[str] = None) -> Statement:
        if isinstance(value, str):
            value = ItemValue(value)
        statement = Statement(property=property, value=value, subject=item, qualifiers=tuple(qualifiers),
                              references=tuple(references), rank=rank, id=id)
        self.statements.setdefault(item, []).append(statement)
        return statement

    def add_labels(self, item: str, labels: Dict[str, str], aliases: Optional[Dict[str, Sequence[str]]] = None):
        self.labels[item] = Labels(labels=dict(labels),
                                   aliases={k: tuple(v) for k, v in (aliases or {}).items()})

    def _check(self, key: str):
        if key in self.failing:
            raise AdapterError(f"fake failure for {key}", source="fake_graph", kind="network")

    async def statements_of(self, item: str, property: Optional[str] = None) -> List[Statement]:
        self.calls.append(("statements_of", item, property))
        self._check(item)
        return [s for s in self.statements.get(item, []) if property is None or s.property == property]

    async def items_matching_label(self, text: str, language: Optional[str] = None,
                                   instance_of: Optional[str] = None) -> List[str]:
        self.calls.append(("items_matching_label", text, language, instance_of))
        self._check(text)
        return list(self.search.get(text, []))

    async def nearby_by_property(self, property, coordinate, radius_km) -> List[NearbyMatch]:
        self.calls.append(("nearby_by_property", property, coordinate, radius_km))
        self._check("nearby")
        return list(self.nearby)

    async def labels_of(self, item: str) -> Labels:
        self.calls.append(("labels_of", item))
        self._check(item)
        return self.labels.get(item, Labels())


class FakeCategories:
    """WikiCategoryGraph backed by dicts. Wikis in ``failing_wikis`` raise AdapterError."""

    def __init__(self):
        self.sitelinks: Dict[str, Dict[str, str]] = {}
        self.members: Dict[Tuple[str, str], List[str]] = {}
        self.subcategories: Dict[Tuple[str, str], List[str]] = {}
        self.page_items: Dict[Tuple[str, str], str] = {}
        self.disambiguations: Set[str] = set()
        self.extlinks: Dict[Tuple[str, str], List[str]] = {}
        self.failing_wikis: Set[str] = set()
        self.calls: List[tuple] = []

    def _check(self, wiki: str):
        if wiki in self.failing_wikis:
            raise AdapterError(f"fake failure for {wiki}", source=wiki, kind="timeout")

    async def subcategories_of(self, wiki: str, page: str) -> List[str]:
        self.calls.append(("subcategories_of", wiki, page))
        self._check(wiki)
        return list(self.subcategories.get((wiki, page), []))

    async def members_of(self, wiki: str, page: str) -> List[str]:
        self.calls.append(("members_of", wiki, page))
        self._check(wiki)
        return list(self.members.get((wiki, page), []))

    async def item_for_page(self, wiki: str, page: str) -> Optional[str]:
        return self.page_items.get((wiki, page))

    async def sitelink_exists(self, item: str, wiki: str) -> bool:
        return wiki in self.sitelinks.get(item, {})

    async def is_disambiguation(self, item: str) -> bool:
        return item in self.disambiguations

    async def sitelinks_of(self, item: str) -> Dict[str, str]:
        return dict(self.sitelinks.get(item, {}))

    async def external_links(self, wiki: str, page: str) -> List[str]:
        self._check(wiki)
        return list(self.extlinks.get((wiki, page), []))


class FakePages:
    """PageFetcher returning canned texts; unknown URLs are HTTP errors."""

    def __init__(self, pages: Optional[Dict[str, str]] = None):
        self.pages: Dict[str, Union[str, FetchResult]] = dict(pages or {})
        self.fetched: List[str] = []

    async def fetch_text(self, url: str) -> FetchResult:
        self.fetched.append(url)
        page = self.pages.get(url)
        if isinstance(page, FetchResult):
            return page
        if page is None:
            return FetchResult(url=url, error="http_error")
        return FetchResult(url=url, text=page)


class FakeBooks:
    """BibliographicLookup returning fixed fields, or failing."""

    def __init__(self, provider: str, values: Sequence[Tuple[str, Value]] = (), error: bool = False,
                 stated_in: Optional[str] = None, id_property: Optional[str] = None, record_id: str = "R1"):
        self.provider = provider
        self.error = error
        self.fields = [
            ProviderField(provider=provider, property=property, value=value, record_id=record_id,
                          stated_in=stated_in, url=f"https://{provider}.example/{record_id}",
                          id_property=id_property)
            for property, value in values
        ]
        self.looked_up: List[str] = []

    async def lookup(self, isbn: str) -> List[ProviderField]:
        self.looked_up.append(isbn)
        if self.error:
            raise AdapterError(f"{self.provider} down", source=self.provider, kind="http_error")
        return list(self.fields)


class FakeAuthority:
    def __init__(self, records: Sequence[AuthorityRecord] = ()):
        self.records = list(records)
        self.queries: List[str] = []

    async def search(self, query: str) -> List[AuthorityRecord]:
        self.queries.append(query)
        return list(self.records)


class RecordingHooks:
    """AppHooks that records progress and can request a stop."""

    def __init__(self, stop: bool = False):
        self.stop = stop
        self.steps: List[str] = []

    def report_step(self, info: str = "", target: int = None, reset_counter: bool = False, plus_step: int = 1):
        self.steps.append(info)

    def stop_requested(self) -> bool:
        return self.stop


@pytest.fixture
def graph():
    return FakeGraph()


@pytest.fixture
def categories():
    return FakeCategories()


@pytest.fixture
def pages():
    return FakePages()


@pytest.fixture
def sources(graph, categories, pages):
    return Sources(graph=graph, categories=categories, pages=pages)


@pytest.fixture
def default_config():
    """Default inference configuration."""
    return InferenceConfig()


@pytest.fixture
def qualifiers_for_interval():
    """Factory for P580/P582 year qualifiers."""
    return interval


@pytest.fixture
def book_provider():
    """Factory for fake bibliographic providers."""
    return FakeBooks


@pytest.fixture
def authority():
    """Factory for a fake authority search."""
    return FakeAuthority


@pytest.fixture
def hooks():
    """Factory for recording app hooks."""
    return RecordingHooks
