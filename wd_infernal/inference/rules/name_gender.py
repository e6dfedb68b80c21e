from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Set, Tuple

from wd_infernal.app_hooks import AppHooks
from wd_infernal.errors import AdapterError
from wd_infernal.inference.model import (
    INFERNAL_HEURISTIC, ItemValue, Issue, Reference, Statement, new_statement,
)
from wd_infernal.inference.queries import NameGenderRequest
from wd_infernal.sources.interfaces import Sources
from .base import BaseRule, register_rule

logger = logging.getLogger(__name__)

P_INSTANCE_OF = "P31"
P_SEX_OR_GENDER = "P21"
P_GIVEN_NAME = "P735"
P_FAMILY_NAME = "P734"

FAMILY_NAME = "Q101352"
MALE_GIVEN_NAME = "Q12308941"
FEMALE_GIVEN_NAME = "Q11879590"
MALE = "Q6581097"
FEMALE = "Q6581072"

INFERRED_FROM_GIVEN_NAME = "Q69652498"
INFERRED_FROM_FULL_NAME = "Q97033143"


@register_rule
@dataclass
class NameGenderRule(BaseRule):
    """
    Splits a full name into given names and a family name, resolves each to a
    name item, and infers gender from the given names.

    The last token is taken as the family name and all preceding tokens as
    given names. This does not hold for every naming convention.
    """
    rule_id: str = "name_gender"
    gender_threshold: float = 1.0
    language: Optional[str] = None
    confidence: float = 0.8
    app_hooks: Optional[AppHooks] = None

    request_types: ClassVar[Tuple[type, ...]] = (NameGenderRequest,)

    async def run(self, request: NameGenderRequest, sources: Sources, issues: List[Issue]) -> List[Statement]:
        tokens = request.name.split() if isinstance(request.name, str) else []
        if not tokens:
            return []
        graph = self.require(sources.graph, "graph")
        family_token, given_tokens = tokens[-1], tokens[:-1]

        searches = [self._single_name(graph, family_token, FAMILY_NAME, issues)]
        for token in given_tokens:
            searches.append(self._single_name(graph, token, MALE_GIVEN_NAME, issues))
            searches.append(self._single_name(graph, token, FEMALE_GIVEN_NAME, issues))
        results = await asyncio.gather(*searches)
        family_hits = results[0]
        male_hits = results[1::2]
        female_hits = results[2::2]

        name_provenance = self.provenance(inputs=(request.name,), method="full_name")
        name_reference = Reference(heuristic=INFERNAL_HEURISTIC, inferred_from=INFERRED_FROM_FULL_NAME)
        statements: List[Statement] = []

        if len(family_hits) == 1:
            statements.append(
                new_statement(None, P_FAMILY_NAME, ItemValue(family_hits[0]))
                .with_provenance(name_provenance)
                .with_confidence(self.confidence)
                .with_reference(name_reference)
            )

        unisex: Set[str] = {q for males in male_hits for q in males} & {q for females in female_hits for q in females}
        male_tokens = female_tokens = 0
        given_names: List[str] = []
        for males, females in zip(male_hits, female_hits):
            items = list(dict.fromkeys(males + females))
            if len(items) == 1 and items[0] not in given_names:
                given_names.append(items[0])
            males = [q for q in males if q not in unisex]
            females = [q for q in females if q not in unisex]
            if males and not females:
                male_tokens += 1
            elif females and not males:
                female_tokens += 1

        gender = self._gender(male_tokens, female_tokens)
        if gender is not None:
            value, share = gender
            statements.append(
                new_statement(None, P_SEX_OR_GENDER, ItemValue(value))
                .with_provenance(self.provenance(inputs=tuple(given_tokens), method="given_name"))
                .with_confidence(share)
                .with_reference(Reference(heuristic=INFERNAL_HEURISTIC, inferred_from=INFERRED_FROM_GIVEN_NAME))
            )

        for given_name in given_names:
            statements.append(
                new_statement(None, P_GIVEN_NAME, ItemValue(given_name))
                .with_provenance(name_provenance)
                .with_confidence(self.confidence)
                .with_reference(name_reference)
            )
        return statements

    def _gender(self, male_tokens: int, female_tokens: int) -> Optional[Tuple[str, float]]:
        total = male_tokens + female_tokens
        if total == 0:
            return None
        male_share = male_tokens / total
        female_share = female_tokens / total
        is_male = male_share >= self.gender_threshold
        is_female = female_share >= self.gender_threshold
        if is_male and not is_female:
            return MALE, male_share
        if is_female and not is_male:
            return FEMALE, female_share
        return None

    async def _single_name(self, graph, name: str, name_class: str, issues: List[Issue]) -> List[str]:
        """
        Items of class ``name_class`` with a label or alias equal to ``name`` (case-insensitive).
        More than one hit means the name is ambiguous and yields nothing.
        """
        try:
            candidates = await graph.items_matching_label(name, self.language, instance_of=name_class)
            candidates = list(dict.fromkeys(candidates))
            checks = await asyncio.gather(*(self._is_name_item(graph, q, name, name_class) for q in candidates))
        except AdapterError as e:
            self.record_adapter_failure(issues, e, f"name '{name}' as {name_class}")
            return []
        hits = [q for q, ok in zip(candidates, checks) if ok]
        if len(hits) > 1:
            logger.debug(f"{self.rule_id}: '{name}' is ambiguous as {name_class}: {hits}")
            return []
        return hits

    @staticmethod
    async def _is_name_item(graph, item: str, name: str, name_class: str) -> bool:
        instance_of, labels = await asyncio.gather(graph.statements_of(item, P_INSTANCE_OF), graph.labels_of(item))
        if not any(isinstance(s.value, ItemValue) and s.value.id == name_class for s in instance_of):
            return False
        wanted = name.casefold()
        return any(label.casefold() == wanted for label in labels.all_names())
