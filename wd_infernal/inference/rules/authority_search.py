from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import ClassVar, Dict, List, Optional, Tuple

from wd_infernal.app_hooks import AppHooks
from wd_infernal.errors import ValidationError
from wd_infernal.inference.model import P_NAMED_AS, Issue, Reference, Statement, StringValue, new_statement
from wd_infernal.inference.queries import AuthoritySearchRequest
from wd_infernal.sources.interfaces import AuthorityRecord, Sources
from .base import BaseRule, register_rule

logger = logging.getLogger(__name__)

P_VIAF_ID = "P214"
VIAF = "Q54919"
VIAF_URL = "https://viaf.org/viaf/{}"


@register_rule
@dataclass
class AuthoritySearchRule(BaseRule):
    """
    Searches an authority file (VIAF) by name. Each matching cluster becomes a
    VIAF ID statement, and every member record with a known source code becomes
    an identifier statement tied to the cluster by a P214 qualifier.
    """
    rule_id: str = "authority_search"
    code_properties: Dict[str, str] = field(default_factory=dict)
    confidence: float = 0.6
    app_hooks: Optional[AppHooks] = None

    request_types: ClassVar[Tuple[type, ...]] = (AuthoritySearchRequest,)

    async def run(self, request: AuthoritySearchRequest, sources: Sources, issues: List[Issue]) -> List[Statement]:
        query = request.query.strip() if isinstance(request.query, str) else ""
        if not query:
            raise ValidationError(f"Invalid authority query: {request.query!r}")
        authority = self.require(sources.authority, "authority")

        records = await authority.search(query)
        statements: List[Statement] = []
        for record in records:
            statements.extend(self._record_statements(query, record))
        logger.debug(f"{self.rule_id}: {len(records)} records, {len(statements)} statements for '{query}'")
        return statements

    def _record_statements(self, query: str, record: AuthorityRecord) -> List[Statement]:
        provenance = self.provenance(inputs=(query,), method="authority_cluster")
        reference = Reference(url=VIAF_URL.format(record.id), stated_in=VIAF, external_id=(P_VIAF_ID, record.id))
        cluster = new_statement(None, P_VIAF_ID, StringValue(record.id, "external-id"))
        if record.label:
            cluster = cluster.with_qualifier(P_NAMED_AS, StringValue(record.label))
        statements = [cluster]

        seen = set()
        for source_id in record.ids:
            property = self.code_properties.get(source_id.code)
            if property is None or property == P_VIAF_ID or not source_id.id:
                continue
            if (property, source_id.id) in seen:
                continue
            seen.add((property, source_id.id))
            statements.append(
                new_statement(None, property, StringValue(source_id.id, "external-id"))
                .with_qualifier(P_VIAF_ID, StringValue(record.id, "external-id"))
            )
        return [
            s.with_provenance(provenance).with_confidence(self.confidence).with_reference(reference)
            for s in statements
        ]
