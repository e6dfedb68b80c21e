from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date as _date
from typing import ClassVar, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from wd_infernal.app_hooks import AppHooks
from wd_infernal.errors import AdapterError
from wd_infernal.inference.model import (
    INFERNAL_HEURISTIC, ItemValue, Issue, MonolingualTextValue, Reference, Statement, StringValue,
    TextExcerpt, TimeValue, Value,
)
from wd_infernal.inference.queries import ReferenceMiningRequest
from wd_infernal.inference.text_utils import (
    clean_url, date_patterns, find_excerpt, guess_language, has_bad_fragment, is_wikimedia_url,
    language_of_wiki, name_patterns,
)
from wd_infernal.sources.interfaces import FetchResult, Labels, Sources
from .base import BaseRule, normalize_item, register_rule

logger = logging.getLogger(__name__)

P_INSTANCE_OF = "P31"
P_FORMATTER_URL = "P1630"
P_STATED_IN_FOR_ID = "P9073"  # applicable 'stated in' value
P_OFFICIAL_WEBSITE = "P856"
P_DESCRIBED_AT_URL = "P973"

NO_REFERENCE_DATATYPES = ("external-id", "commonsMedia")


@dataclass(frozen=True)
class CandidatePage:
    """A page that may hold a reference, and what is known about it before fetching."""
    url: str
    external_id: Optional[Tuple[str, str]] = None
    stated_in: Optional[str] = None
    language: Optional[str] = None


@dataclass(frozen=True)
class _FetchedPage:
    page: CandidatePage
    text: str
    language: str


@register_rule
@dataclass
class ReferenceMiningRule(BaseRule):
    """
    Proposes references for an item's statements by finding the statement
    values in pages linked from the item: identifier pages, websites and the
    external links of its wiki articles.
    """
    rule_id: str = "reference_mining"
    unsupported_entity_markers: Tuple[str, ...] = ()
    no_reference_properties: Tuple[str, ...] = ()
    only_unreferenced: bool = True
    bad_url_fragments: Tuple[str, ...] = ()
    skip_url_fragments_for_property: Mapping[str, Sequence[str]] = None
    non_language_wikis: Tuple[str, ...] = ()
    context_chars: int = 60
    min_label_length: int = 3
    default_language: str = "en"
    confidence: float = 0.6
    app_hooks: Optional[AppHooks] = None

    request_types: ClassVar[Tuple[type, ...]] = (ReferenceMiningRequest,)

    async def run(self, request: ReferenceMiningRequest, sources: Sources, issues: List[Issue]) -> List[Statement]:
        item = normalize_item(request.item)
        graph = self.require(sources.graph, "graph")
        fetcher = self.require(sources.pages, "pages")

        statements = [replace(s, subject=item) for s in await graph.statements_of(item)]
        if not self._is_supported(statements):
            logger.info(f"{self.rule_id}: {item} is an unsupported kind of entity")
            return []
        needing = self._statements_needing_references(statements)
        if not needing:
            return []

        candidates = await self._candidate_pages(item, statements, sources, issues)
        if not candidates:
            return []
        self._report_step(info=f"Fetching {len(candidates)} pages for {item}", target=len(candidates),
                          reset_counter=True, plus_step=0)
        pages = await self._fetch_pages(fetcher, candidates, issues)
        if not pages:
            return []

        labels = await self._value_labels(graph, needing, issues)
        today = _date.today()
        results: List[Tuple[Tuple[str, str], Statement]] = []
        for statement in needing:
            for page in pages:
                if self._skip(statement, page.page):
                    continue
                excerpts = self._excerpts(statement.value, page, labels)
                if not excerpts:
                    continue
                reference = Reference(
                    url=page.page.url,
                    stated_in=page.page.stated_in,
                    external_id=page.page.external_id,
                    heuristic=INFERNAL_HEURISTIC,
                    retrieved=today,
                    method=self.rule_id,
                    language=page.language,
                    excerpts=excerpts,
                )
                candidate = (
                    statement.with_provenance(self.provenance(inputs=(item, page.page.url),
                                                              method="page_text_match"))
                    .with_confidence(self.confidence)
                    .with_reference(reference)
                )
                results.append(((statement.id or "", page.page.url), candidate))

        results.sort(key=lambda pair: pair[0])
        logger.info(f"{self.rule_id}: {len(results)} reference candidates for {item} from {len(pages)} pages")
        return [statement for _, statement in results]

    # ---------- statement selection ----------

    def _is_supported(self, statements: List[Statement]) -> bool:
        for statement in statements:
            if (statement.property == P_INSTANCE_OF and isinstance(statement.value, ItemValue)
                    and statement.value.id in self.unsupported_entity_markers):
                return False
        return True

    def _statements_needing_references(self, statements: List[Statement]) -> List[Statement]:
        needing = []
        for statement in statements:
            if statement.property in self.no_reference_properties:
                continue
            if isinstance(statement.value, StringValue) and statement.value.datatype in NO_REFERENCE_DATATYPES:
                continue
            if self.only_unreferenced and statement.references:
                continue
            needing.append(statement)
        return needing

    # ---------- candidate pages ----------

    async def _candidate_pages(self, item: str, statements: List[Statement], sources: Sources,
                               issues: List[Issue]) -> List[CandidatePage]:
        from_ids, from_wikis = await asyncio.gather(
            self._external_id_pages(sources.graph, statements, issues),
            self._wiki_link_pages(item, sources.categories, issues),
        )
        websites = [
            CandidatePage(url=s.value.text) for s in statements
            if s.property in (P_OFFICIAL_WEBSITE, P_DESCRIBED_AT_URL) and isinstance(s.value, StringValue)
        ]

        pages: List[CandidatePage] = []
        seen: Set[str] = set()
        for page in from_ids + websites + from_wikis:
            url = clean_url(page.url)
            if not url.startswith("http") or url in seen:
                continue
            if has_bad_fragment(url, self.bad_url_fragments):
                logger.debug(f"{self.rule_id}: skipping bad URL {url}")
                continue
            seen.add(url)
            pages.append(replace(page, url=url))
        return pages

    async def _external_id_pages(self, graph, statements: List[Statement], issues: List[Issue]) -> List[CandidatePage]:
        ids: List[Tuple[str, str]] = []
        for statement in statements:
            value = statement.value
            if isinstance(value, StringValue) and value.datatype == "external-id":
                pair = (statement.property, value.text)
                if pair not in ids:
                    ids.append(pair)
        properties = list(dict.fromkeys(p for p, _ in ids))
        results = await asyncio.gather(*(graph.statements_of(p) for p in properties), return_exceptions=True)

        formatters: Dict[str, Tuple[str, Optional[str]]] = {}
        for property, result in zip(properties, results):
            if isinstance(result, BaseException):
                if not isinstance(result, AdapterError):
                    raise result
                self.record_adapter_failure(issues, result, f"property {property}", related_ids=(property,))
                continue
            formatter = next((s.value.text for s in result
                              if s.property == P_FORMATTER_URL and isinstance(s.value, StringValue)), None)
            if not formatter:
                continue
            stated_in = next((s.value.id for s in result
                              if s.property == P_STATED_IN_FOR_ID and isinstance(s.value, ItemValue)), None)
            formatters[property] = (formatter, stated_in)

        pages = []
        for property, external_id in ids:
            if property not in formatters:
                continue
            formatter, stated_in = formatters[property]
            pages.append(CandidatePage(
                url=formatter.replace("$1", external_id),
                external_id=(property, external_id),
                stated_in=stated_in,
            ))
        return pages

    async def _wiki_link_pages(self, item: str, categories, issues: List[Issue]) -> List[CandidatePage]:
        if categories is None:
            return []
        try:
            sitelinks = await categories.sitelinks_of(item)
        except AdapterError as e:
            self.record_adapter_failure(issues, e, f"sitelinks of {item}", related_ids=(item,))
            return []
        articles = [
            (wiki, title) for wiki, title in sitelinks.items()
            if ":" not in title and wiki not in self.non_language_wikis
        ]
        results = await asyncio.gather(*(categories.external_links(wiki, title) for wiki, title in articles),
                                       return_exceptions=True)
        pages = []
        for (wiki, title), result in zip(articles, results):
            if isinstance(result, BaseException):
                if not isinstance(result, AdapterError):
                    raise result
                self.record_adapter_failure(issues, result, f"external links of {wiki}:{title}")
                continue
            language = language_of_wiki(wiki)
            for url in result:
                if is_wikimedia_url(url):
                    continue
                pages.append(CandidatePage(url=url, language=language))
        return pages

    async def _fetch_pages(self, fetcher, candidates: List[CandidatePage], issues: List[Issue]) -> List[_FetchedPage]:
        results = await asyncio.gather(*(fetcher.fetch_text(page.url) for page in candidates),
                                       return_exceptions=True)
        pages = []
        for page, result in zip(candidates, results):
            if isinstance(result, BaseException):
                if not isinstance(result, AdapterError):
                    raise result
                result = FetchResult(url=page.url, error=result.kind)
            if not result.ok or not result.text:
                # unknown, not "no reference"
                self.record_issue(issues, "fetch_failed", f"Could not fetch {page.url} ({result.error or 'empty'})",
                                  related_ids=(page.url,))
                continue
            language = page.language or guess_language(result.text, default=self.default_language)
            pages.append(_FetchedPage(page=page, text=result.text, language=language))
            self._report_step(plus_step=1)
        return pages

    # ---------- matching ----------

    async def _value_labels(self, graph, statements: List[Statement], issues: List[Issue]) -> Dict[str, Labels]:
        items = list(dict.fromkeys(s.value.id for s in statements if isinstance(s.value, ItemValue)))
        results = await asyncio.gather(*(graph.labels_of(i) for i in items), return_exceptions=True)
        labels: Dict[str, Labels] = {}
        for value_item, result in zip(items, results):
            if isinstance(result, BaseException):
                if not isinstance(result, AdapterError):
                    raise result
                self.record_adapter_failure(issues, result, f"labels of {value_item}", related_ids=(value_item,))
                continue
            labels[value_item] = result
        return labels

    def _skip(self, statement: Statement, page: CandidatePage) -> bool:
        if statement.has_reference_for(Reference(url=page.url)):
            return True
        if page.external_id and statement.has_reference_for(Reference(external_id=page.external_id)):
            return True
        fragments = (self.skip_url_fragments_for_property or {}).get(statement.property, ())
        return has_bad_fragment(page.url, fragments)

    def search_patterns(self, value: Value, language: str, labels: Dict[str, Labels]) -> List[str]:
        """Regex patterns that find ``value`` in a page written in ``language``."""
        if isinstance(value, TimeValue):
            parsed = value.parsed
            return date_patterns(parsed, language) if parsed else []
        if isinstance(value, (StringValue, MonolingualTextValue)):
            return name_patterns([value.text], min_length=1)
        if isinstance(value, ItemValue):
            item_labels = labels.get(value.id)
            if item_labels is None:
                return []
            names = item_labels.in_language("mul") + item_labels.in_language(language)
            return name_patterns(names, min_length=self.min_label_length)
        return []

    def _excerpts(self, value: Value, page: _FetchedPage, labels: Dict[str, Labels]) -> Tuple[TextExcerpt, ...]:
        excerpts: Set[TextExcerpt] = set()
        for pattern in self.search_patterns(value, page.language, labels):
            excerpt = find_excerpt(pattern, page.text, self.context_chars)
            if excerpt is not None:
                excerpts.add(excerpt)
        return tuple(sorted(excerpts))
