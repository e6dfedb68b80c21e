from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import ClassVar, List, Optional, Pattern, Tuple

from unidecode import unidecode

from wd_infernal.app_hooks import AppHooks
from wd_infernal.errors import AdapterError, ValidationError
from wd_infernal.inference.model import (
    INFERNAL_HEURISTIC, P_NAMED_AS, ItemValue, Issue, Reference, Statement, StringValue, new_statement,
)
from wd_infernal.inference.queries import InitialsSearchRequest
from wd_infernal.sources.interfaces import Sources
from .base import BaseRule, register_rule

logger = logging.getLogger(__name__)

P_INSTANCE_OF = "P31"
HUMAN = "Q5"

_INITIAL_RE = re.compile(r'\b([A-Z])\b\.? *')
_SPACE_RE = re.compile(r'\s+')


@dataclass(frozen=True)
class InitialsQuery:
    """
    A name with initials, such as 'H.M.Manske' or 'Heinrich M. Manske'.

    Initials may appear anywhere before the surname, which is the text after
    the last initial. Written-out names in the query are kept as they are.
    """
    text: str
    initials: Tuple[str, ...]
    surname: str

    @classmethod
    def parse(cls, query: str) -> InitialsQuery:
        """
        Raises:
            ValidationError: If the query has no initial or nothing after the last one.
        """
        if not isinstance(query, str):
            raise ValidationError(f"Invalid initials query: {query!r}")
        text = query.strip()
        matches = list(_INITIAL_RE.finditer(text))
        if not matches:
            raise ValidationError(f"No initials in query: {query!r}")
        surname = text[matches[-1].end():].strip()
        if not surname:
            raise ValidationError(f"No surname in query: {query!r}")
        return cls(text, tuple(m.group(1) for m in matches), surname)

    def matcher(self) -> Pattern:
        """
        Regex over unidecode-folded labels.

        Each initial expands in place to a word starting with that letter,
        optionally followed by further names ('H' covers 'Heinrich Karl').
        Written-out words must appear as given and the label must end with
        the surname.
        """
        parts: List[str] = []
        position = 0
        for match in _INITIAL_RE.finditer(self.text):
            parts.extend(self._word_patterns(self.text[position:match.start()]))
            parts.append(rf'{re.escape(match.group(1))}\S*(?:\s+\S+)*?')
            position = match.end()
        parts.extend(self._word_patterns(self.text[position:]))
        return re.compile(rf'^{_SPACE_RE.pattern.join(parts)}$', re.IGNORECASE)

    @staticmethod
    def _word_patterns(segment: str) -> List[str]:
        return [re.escape(unidecode(word)) for word in _SPACE_RE.split(segment.strip()) if word]

    def matches(self, label: str) -> bool:
        return bool(self.matcher().match(unidecode(label.strip())))

    def like_patterns(self) -> Tuple[str, str]:
        """SQL LIKE and RLIKE patterns for a term store: ('H%_M%_Manske', '^H.*? M.*? Manske$')."""
        like = _INITIAL_RE.sub(lambda m: f"{m.group(1)}%_", self.text)
        rlike = _INITIAL_RE.sub(lambda m: f"{m.group(1)}.*? ", self.text)
        return like, f"^{rlike}$"


@register_rule
@dataclass
class InitialsSearchRule(BaseRule):
    """Finds humans whose label or alias expands the initials of a query."""
    rule_id: str = "initials_search"
    language: Optional[str] = None
    confidence: float = 0.5
    app_hooks: Optional[AppHooks] = None

    request_types: ClassVar[Tuple[type, ...]] = (InitialsSearchRequest,)

    async def run(self, request: InitialsSearchRequest, sources: Sources, issues: List[Issue]) -> List[Statement]:
        query = InitialsQuery.parse(request.query)
        graph = self.require(sources.graph, "graph")

        candidates = list(dict.fromkeys(
            await graph.items_matching_label(query.surname, self.language, instance_of=HUMAN)))
        results = await asyncio.gather(*(self._check(graph, query, item) for item in candidates),
                                       return_exceptions=True)

        provenance = self.provenance(inputs=(query.text,), method="initials_expansion")
        statements: List[Statement] = []
        for item, result in zip(candidates, results):
            if isinstance(result, BaseException):
                if not isinstance(result, AdapterError):
                    raise result
                self.record_adapter_failure(issues, result, f"candidate {item}", related_ids=(item,))
                continue
            if result is None:
                continue
            statements.append(
                new_statement(item, P_INSTANCE_OF, ItemValue(HUMAN))
                .with_qualifier(P_NAMED_AS, StringValue(result))
                .with_provenance(provenance)
                .with_confidence(self.confidence)
                .with_reference(Reference(heuristic=INFERNAL_HEURISTIC))
            )
        logger.debug(f"{self.rule_id}: {len(statements)} of {len(candidates)} candidates match {query.text}")
        return statements

    @staticmethod
    async def _check(graph, query: InitialsQuery, item: str) -> Optional[str]:
        """The first matching label or alias of a human, else None."""
        labels, instance_of = await asyncio.gather(graph.labels_of(item), graph.statements_of(item, P_INSTANCE_OF))
        if not any(isinstance(s.value, ItemValue) and s.value.id == HUMAN for s in instance_of):
            return None
        return next((name for name in labels.all_names() if query.matches(name)), None)
