from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import ClassVar, List, Optional, Set, Tuple

from wd_infernal.app_hooks import AppHooks
from wd_infernal.errors import AdapterError
from wd_infernal.inference.model import (
    INFERNAL_HEURISTIC, P_END_TIME, P_POINT_IN_TIME, P_START_TIME, DateRange, ItemValue, Issue, Reference,
    Statement, TimeValue, new_statement,
)
from wd_infernal.inference.queries import CountryAtYearRequest
from wd_infernal.sources.interfaces import Sources
from .base import BaseRule, normalize_int, normalize_item, register_rule

logger = logging.getLogger(__name__)

P_LOCATED_IN_ADMIN = "P131"

Candidate = Tuple[str, Statement]  # (chain node, statement)


def has_interval(statement: Statement) -> bool:
    return bool(statement.qualifier_values(P_START_TIME) or statement.qualifier_values(P_END_TIME))


@register_rule
@dataclass
class CountryAtYearRule(BaseRule):
    """
    Resolves a time-dependent property (country by default) of a place for a
    given year, walking up the P131 chain until a level has an answer.
    """
    rule_id: str = "country_at_year"
    default_property: str = "P17"
    max_depth: int = 5
    confidence: float = 0.7
    app_hooks: Optional[AppHooks] = None

    request_types: ClassVar[Tuple[type, ...]] = (CountryAtYearRequest,)

    async def run(self, request: CountryAtYearRequest, sources: Sources, issues: List[Issue]) -> List[Statement]:
        item = normalize_item(request.item)
        year = normalize_int(request.year, "year")
        target = normalize_item(request.property or self.default_property, "property")
        graph = self.require(sources.graph, "graph")

        visited: Set[str] = {item}
        level = [item]
        depth = 0
        while level:
            candidates = await self._level_candidates(graph, level, target, depth, issues)
            statements = self._resolve(item, year, target, candidates, issues)
            if statements:
                logger.debug(f"{self.rule_id}: {item} {target} @ {year} resolved at chain depth {depth}")
                return statements
            if depth >= self.max_depth:
                break
            level = await self._parents(graph, level, year, visited, issues)
            depth += 1
        return []

    async def _level_candidates(self, graph, level: List[str], target: str, depth: int,
                                issues: List[Issue]) -> List[Candidate]:
        results = await asyncio.gather(*(graph.statements_of(node, target) for node in level),
                                       return_exceptions=True)
        candidates: List[Candidate] = []
        for node, result in zip(level, results):
            if isinstance(result, BaseException):
                # the item itself is required input; parents are best effort
                if depth == 0 or not isinstance(result, AdapterError):
                    raise result
                self.record_adapter_failure(issues, result, f"{target} of {node}", related_ids=(node,))
                continue
            candidates.extend(
                (node, statement) for statement in result
                if statement.property == target and statement.rank != "deprecated"
            )
        return candidates

    async def _parents(self, graph, level: List[str], year: int, visited: Set[str],
                       issues: List[Issue]) -> List[str]:
        results = await asyncio.gather(*(graph.statements_of(node, P_LOCATED_IN_ADMIN) for node in level),
                                       return_exceptions=True)
        next_level: List[str] = []
        for node, result in zip(level, results):
            if isinstance(result, BaseException):
                if not isinstance(result, AdapterError):
                    raise result
                self.record_adapter_failure(issues, result, f"{P_LOCATED_IN_ADMIN} of {node}", related_ids=(node,))
                continue
            for statement in result:
                if statement.rank == "deprecated" or not isinstance(statement.value, ItemValue):
                    continue
                if not DateRange.from_statement(statement).contains(year):
                    continue
                parent = statement.value.id
                if parent not in visited:
                    visited.add(parent)
                    next_level.append(parent)
        return next_level

    def _resolve(self, item: str, year: int, target: str, candidates: List[Candidate],
                 issues: List[Issue]) -> List[Statement]:
        matches = [
            (node, statement) for node, statement in candidates
            if has_interval(statement) and DateRange.from_statement(statement).contains(year)
        ]
        if matches:
            if len(matches) > 1:
                self.record_issue(
                    issues, "ambiguous_interval",
                    f"{len(matches)} {target} statements of the chain of {item} are valid in {year}",
                    severity="info",
                    related_ids=tuple(str(statement.value) for _, statement in matches),
                )
            return [self._emit(item, year, target, node, statement) for node, statement in matches]

        defaults = [(node, statement) for node, statement in candidates if not has_interval(statement)]
        if not defaults:
            return []
        preferred = [pair for pair in defaults if pair[1].rank == "preferred"]
        node, statement = (preferred or defaults)[0]
        return [self._emit(item, year, target, node, statement).as_default()]

    def _emit(self, item: str, year: int, target: str, node: str, source: Statement) -> Statement:
        statement = new_statement(item, target, source.value).with_qualifier(
            P_POINT_IN_TIME, TimeValue.from_year(year))
        statement = statement.with_qualifiers(
            q for q in source.qualifiers if q.property in (P_START_TIME, P_END_TIME))
        provenance = self.provenance(inputs=(item, year, node), method="administrative_chain")
        return (
            statement.with_provenance(provenance)
            .with_confidence(self.confidence)
            .with_reference(Reference(heuristic=INFERNAL_HEURISTIC))
        )
