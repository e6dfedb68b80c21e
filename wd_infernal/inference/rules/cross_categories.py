from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Set, Tuple

from wd_infernal.app_hooks import AppHooks
from wd_infernal.errors import AdapterError, ValidationError
from wd_infernal.inference.model import (
    INFERNAL_HEURISTIC, P_NAMED_AS, ItemValue, Issue, Reference, Statement, StringValue, new_statement,
)
from wd_infernal.inference.queries import CrossCategoriesRequest
from wd_infernal.sources.interfaces import Sources
from .base import BaseRule, normalize_int, normalize_item, register_rule

logger = logging.getLogger(__name__)

P_INSTANCE_OF = "P31"
WIKIMEDIA_CATEGORY = "Q4167836"

_LANGUAGE_RE = re.compile(r'^[a-z][a-z0-9-]*$')

CategoryGraphNode = Tuple[str, str]  # (wiki, page title)


def wiki_for_language(language: str) -> str:
    """'de' -> 'dewiki', 'zh-min-nan' -> 'zh_min_nanwiki'."""
    return f"{language.replace('-', '_')}wiki"


@dataclass
class _Found:
    """Aggregate for one candidate item across wikis."""
    depth: int
    order: int
    wikis: Set[str] = field(default_factory=set)


@register_rule
@dataclass
class CrossCategoriesRule(BaseRule):
    """
    Finds articles that other language wikis file under a category but that
    the target-language category tree does not contain yet.
    """
    rule_id: str = "cross_categories"
    max_depth: int = 5
    contains_property: str = "P4224"
    non_language_wikis: Tuple[str, ...] = ()
    confidence: float = 0.5
    app_hooks: Optional[AppHooks] = None

    request_types: ClassVar[Tuple[type, ...]] = (CrossCategoriesRequest,)

    async def run(self, request: CrossCategoriesRequest, sources: Sources, issues: List[Issue]) -> List[Statement]:
        category = normalize_item(request.item)
        language = request.language.strip().lower() if isinstance(request.language, str) else None
        if not language or not _LANGUAGE_RE.match(language):
            raise ValidationError(f"Invalid language code: {request.language!r}")
        depth = normalize_int(request.depth, "depth")
        if depth < 0:
            raise ValidationError(f"Depth must not be negative: {depth}")
        if depth > self.max_depth:
            self.record_issue(issues, "depth_clamped", f"Depth {depth} reduced to {self.max_depth}", severity="info")
            depth = self.max_depth

        graph = self.require(sources.graph, "graph")
        categories = self.require(sources.categories, "categories")
        await self._validate_category(graph, category)

        target_wiki = wiki_for_language(language)
        sitelinks = await categories.sitelinks_of(category)
        wikis = [
            (wiki, title) for wiki, title in sitelinks.items()
            if wiki.endswith("wiki") and wiki not in self.non_language_wikis
        ]
        self._report_step(info=f"Traversing {len(wikis)} category trees of {category}", target=len(wikis),
                          reset_counter=True, plus_step=0)

        results = await asyncio.gather(
            *(self._traverse(categories, wiki, title, depth) for wiki, title in wikis),
            return_exceptions=True,
        )

        target_pages: Dict[str, int] = {}
        per_wiki: List[Tuple[str, Dict[str, int]]] = []
        for (wiki, title), result in zip(wikis, results):
            if isinstance(result, BaseException):
                if wiki == target_wiki:
                    if isinstance(result, AdapterError):
                        raise result
                    raise AdapterError(f"Traversal of {wiki}:{title} failed: {result}", source=wiki)
                if not isinstance(result, AdapterError):
                    raise result
                self.record_adapter_failure(issues, result, f"category tree {wiki}:{title}",
                                            issue_type="traversal_failed")
                continue
            if wiki == target_wiki:
                target_pages = result
            else:
                per_wiki.append((wiki, result))

        found, target_items = await self._resolve_items(categories, per_wiki, target_wiki, target_pages, issues)
        statements: List[Tuple[Tuple[int, int, int], Statement]] = []
        provenance = self.provenance(inputs=(category, language, depth), method="category_traversal")

        checks = await asyncio.gather(
            *(self._local_page(categories, item, target_wiki) for item in found),
            return_exceptions=True,
        )
        for (item, info), check in zip(found.items(), checks):
            if isinstance(check, BaseException):
                if not isinstance(check, AdapterError):
                    raise check
                self.record_adapter_failure(issues, check, f"candidate {item}", related_ids=(item,))
                continue
            local_page = check
            if local_page is None:
                continue
            if local_page in target_pages or item in target_items:
                continue
            statement = (
                new_statement(category, self.contains_property, ItemValue(item))
                .with_qualifier(P_NAMED_AS, StringValue(local_page))
                .with_depth(info.depth)
                .with_support(len(info.wikis))
                .with_provenance(provenance)
                .with_confidence(self.confidence)
                .with_reference(Reference(heuristic=INFERNAL_HEURISTIC))
            )
            statements.append(((info.depth, -len(info.wikis), info.order), statement))

        statements.sort(key=lambda pair: pair[0])
        logger.info(f"{self.rule_id}: {len(statements)} candidates for {category} in {target_wiki}")
        return [statement for _, statement in statements]

    async def _validate_category(self, graph, category: str) -> None:
        instance_of = await graph.statements_of(category, P_INSTANCE_OF)
        if not any(isinstance(s.value, ItemValue) and s.value.id == WIKIMEDIA_CATEGORY for s in instance_of):
            raise ValidationError(f"{category} is not a Wikimedia category")

    async def _traverse(self, categories, wiki: str, root: str, depth: int) -> Dict[str, int]:
        """
        Level-synchronous BFS of one wiki's category tree.

        Returns:
            Dict[str, int]: article page -> depth of first discovery, in discovery order.
        """
        visited: Set[CategoryGraphNode] = {(wiki, root)}
        frontier = [root]
        found: Dict[str, int] = {}
        for level in range(depth + 1):
            if not frontier:
                break
            if self._stop_requested(f"{self.rule_id}: traversal of {wiki} stopped at level {level}"):
                break
            member_lists = await asyncio.gather(*(categories.members_of(wiki, page) for page in frontier))
            for members in member_lists:
                for page in members:
                    if page not in found:
                        found[page] = level
            if level < depth:
                subcategory_lists = await asyncio.gather(
                    *(categories.subcategories_of(wiki, page) for page in frontier))
                next_frontier = []
                for subcategories in subcategory_lists:
                    for page in subcategories:
                        node = (wiki, page)
                        if node not in visited:
                            visited.add(node)
                            next_frontier.append(page)
                frontier = next_frontier
        self._report_step(info=f"{wiki}: {len(found)} pages", plus_step=1)
        return found

    async def _resolve_items(self, categories, per_wiki: List[Tuple[str, Dict[str, int]]], target_wiki: str,
                             target_pages: Dict[str, int], issues: List[Issue]) -> Tuple[Dict[str, _Found], Set[str]]:
        jobs = [(wiki, page, level) for wiki, pages in per_wiki for page, level in pages.items()]
        jobs.extend((target_wiki, page, level) for page, level in target_pages.items())
        items = await asyncio.gather(
            *(categories.item_for_page(wiki, page) for wiki, page, _ in jobs),
            return_exceptions=True,
        )
        found: Dict[str, _Found] = {}
        target_items: Set[str] = set()
        for (wiki, page, level), item in zip(jobs, items):
            if isinstance(item, BaseException):
                if not isinstance(item, AdapterError):
                    raise item
                self.record_adapter_failure(issues, item, f"page {wiki}:{page}", issue_type="page_resolution_failed")
                continue
            if not item:
                continue
            if wiki == target_wiki:
                target_items.add(item)
                continue
            info = found.get(item)
            if info is None:
                info = found[item] = _Found(depth=level, order=len(found))
            info.depth = min(info.depth, level)
            info.wikis.add(wiki)
        return found, target_items

    async def _local_page(self, categories, item: str, target_wiki: str) -> Optional[str]:
        """Target-wiki title of a candidate, or None if it must be dropped."""
        is_disambiguation, exists = await asyncio.gather(
            categories.is_disambiguation(item),
            categories.sitelink_exists(item, target_wiki),
        )
        if is_disambiguation or not exists:
            return None
        sitelinks = await categories.sitelinks_of(item)
        return sitelinks.get(target_wiki)
