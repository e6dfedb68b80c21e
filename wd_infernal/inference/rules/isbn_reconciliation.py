from __future__ import annotations

import asyncio
import logging
import re
import unicodedata
from dataclasses import dataclass, replace
from datetime import date as _date
from typing import ClassVar, Dict, List, Optional, Sequence, Tuple

import isbnlib
from rapidfuzz import fuzz

from wd_infernal.app_hooks import AppHooks
from wd_infernal.errors import AdapterError, ValidationError
from wd_infernal.inference.model import (
    Issue, MonolingualTextValue, QuantityValue, Reference, Statement, StringValue, TimeValue, Value,
    new_statement,
)
from wd_infernal.inference.queries import IsbnPatchRequest, IsbnRecordRequest
from wd_infernal.sources.interfaces import ProviderField, Sources
from .base import BaseRule, normalize_item, register_rule

logger = logging.getLogger(__name__)

P_ISBN_13 = "P212"
P_ISBN_10 = "P957"
ISBN_PROPERTIES = (P_ISBN_13, P_ISBN_10)

_PUNCTUATION_RE = re.compile(r'[^\w\s]')
_SPACES_RE = re.compile(r'\s+')


@dataclass(frozen=True)
class Isbn:
    """A checksum-valid ISBN as ISBN-13 and, where convertible, ISBN-10 (digits only)."""
    isbn13: str
    isbn10: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> Isbn:
        """
        Reduce to digits and 'X', then validate the checksum.

        Raises:
            ValidationError: If the value is not a valid ISBN-10 or ISBN-13.
        """
        if not isinstance(raw, str):
            raise ValidationError(f"Invalid ISBN: {raw!r}")
        digits = re.sub(r'[^0-9Xx]', '', raw).upper()
        if len(digits) == 10 and isbnlib.is_isbn10(digits):
            return cls(isbnlib.to_isbn13(digits), digits)
        if len(digits) == 13 and isbnlib.is_isbn13(digits):
            return cls(digits, isbnlib.to_isbn10(digits) or None)
        raise ValidationError(f"Invalid ISBN: {raw!r}")

    @property
    def hyphenated13(self) -> str:
        return isbnlib.mask(self.isbn13, separator='-') or self.isbn13

    @property
    def hyphenated10(self) -> Optional[str]:
        if not self.isbn10:
            return None
        return isbnlib.mask(self.isbn10, separator='-') or self.isbn10


def normalize_text(text: str) -> str:
    """Unicode NFKC, case-folded, punctuation removed, whitespace collapsed."""
    text = unicodedata.normalize('NFKC', text).casefold()
    text = _PUNCTUATION_RE.sub(' ', text)
    return _SPACES_RE.sub(' ', text).strip()


def values_equivalent(a: Value, b: Value, threshold: float = 90) -> bool:
    """
    Equivalence used to group provider values: fuzzy for texts, common precision
    for times, equality otherwise.
    """
    if isinstance(a, MonolingualTextValue) and isinstance(b, MonolingualTextValue):
        if a.language != b.language:
            return False
        return fuzz.ratio(normalize_text(a.text), normalize_text(b.text)) >= threshold
    if isinstance(a, StringValue) and isinstance(b, StringValue):
        return fuzz.ratio(normalize_text(a.text), normalize_text(b.text)) >= threshold
    if isinstance(a, TimeValue) and isinstance(b, TimeValue):
        ta, tb = a.parsed, b.parsed
        if ta is None or tb is None:
            return a == b
        precision = min(ta.precision, tb.precision)
        return ta.truncate(precision) == tb.truncate(precision)
    if isinstance(a, QuantityValue) and isinstance(b, QuantityValue):
        return float(a.amount) == float(b.amount) and a.unit == b.unit
    return a == b


@register_rule
@dataclass
class IsbnReconciliationRule(BaseRule):
    """
    Reconciles book metadata from several providers into candidate statements,
    either as a full record for an ISBN or as a patch against an existing item.
    """
    rule_id: str = "isbn_reconciliation"
    string_match_threshold: float = 90
    multi_valued_properties: Tuple[str, ...] = ("P2093", "P31")
    confidence: float = 0.9
    app_hooks: Optional[AppHooks] = None

    request_types: ClassVar[Tuple[type, ...]] = (IsbnRecordRequest, IsbnPatchRequest)

    async def run(self, request, sources: Sources, issues: List[Issue]) -> List[Statement]:
        if isinstance(request, IsbnPatchRequest):
            return await self.patch(request, sources, issues)
        isbn = Isbn.parse(request.isbn)
        return await self.reconcile(isbn, sources, issues, subject=None)

    async def patch(self, request: IsbnPatchRequest, sources: Sources, issues: List[Issue]) -> List[Statement]:
        item = normalize_item(request.item)
        graph = self.require(sources.graph, "graph")
        existing = await graph.statements_of(item)
        isbn = self._isbn_of(item, existing)
        candidates = await self.reconcile(isbn, sources, issues, subject=item)

        patch: List[Statement] = []
        for candidate in candidates:
            current = next((s for s in existing if s.property == candidate.property and s.rank != "deprecated"
                            and self._same_value(candidate.property, s.value, candidate.value)), None)
            if current is None:
                patch.append(candidate)
                continue
            new_references = [r for r in candidate.references if not current.has_reference_for(r)]
            if new_references:
                patch.append(replace(candidate, references=tuple(new_references), id=current.id))
        logger.info(f"{self.rule_id}: {len(patch)} of {len(candidates)} candidates are new for {item}")
        return patch

    def _same_value(self, property: str, a: Value, b: Value) -> bool:
        if property in ISBN_PROPERTIES and isinstance(a, StringValue) and isinstance(b, StringValue):
            return re.sub(r"[^0-9X]", "", a.text.upper()) == re.sub(r"[^0-9X]", "", b.text.upper())
        return values_equivalent(a, b, self.string_match_threshold)

    @staticmethod
    def _isbn_of(item: str, statements: Sequence[Statement]) -> Isbn:
        for property in ISBN_PROPERTIES:
            for statement in statements:
                if statement.property == property and isinstance(statement.value, StringValue):
                    try:
                        return Isbn.parse(statement.value.text)
                    except ValidationError:
                        logger.debug(f"Skipping invalid ISBN {statement.value.text} on {item}")
        raise ValidationError(f"{item} has no valid ISBN statement")

    async def reconcile(self, isbn: Isbn, sources: Sources, issues: List[Issue],
                        subject: Optional[str]) -> List[Statement]:
        providers = list(sources.bibliographic)
        if not providers:
            raise ValueError("Required source 'bibliographic' is not configured")

        results = await asyncio.gather(*(p.lookup(isbn.isbn13) for p in providers), return_exceptions=True)
        fields: List[ProviderField] = []
        failures = 0
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                if not isinstance(result, AdapterError):
                    raise result
                failures += 1
                self.record_adapter_failure(issues, result, f"ISBN {isbn.isbn13}", issue_type="provider_failed")
                continue
            fields.extend(f for f in result if f.property not in ISBN_PROPERTIES)
        if failures == len(providers):
            raise AdapterError(f"All {failures} bibliographic providers failed for {isbn.isbn13}",
                               source="bibliographic", kind="all_failed")

        provider_order = {p.provider: index for index, p in enumerate(providers)}
        statements = self._identifier_statements(isbn, subject)
        by_property: Dict[str, List[ProviderField]] = {}
        for f in fields:
            by_property.setdefault(f.property, []).append(f)
        for property, property_fields in by_property.items():
            statements.extend(self._reconcile_property(isbn, subject, property, property_fields, provider_order))
        return statements

    def _identifier_statements(self, isbn: Isbn, subject: Optional[str]) -> List[Statement]:
        provenance = self.provenance(inputs=(isbn.isbn13,), method="isbn_checksum")
        statements = [new_statement(subject, P_ISBN_13, StringValue(isbn.hyphenated13, "external-id"))]
        if isbn.hyphenated10:
            statements.append(new_statement(subject, P_ISBN_10, StringValue(isbn.hyphenated10, "external-id")))
        return [s.with_provenance(provenance).with_confidence(self.confidence) for s in statements]

    def _group(self, fields: List[ProviderField]) -> List[List[ProviderField]]:
        groups: List[List[ProviderField]] = []
        for f in fields:
            for group in groups:
                if values_equivalent(group[0].value, f.value, self.string_match_threshold):
                    group.append(f)
                    break
            else:
                groups.append([f])
        return groups

    def _reconcile_property(self, isbn: Isbn, subject: Optional[str], property: str,
                            fields: List[ProviderField], provider_order: Dict[str, int]) -> List[Statement]:
        groups = self._group(fields)
        reporting = _distinct_providers(fields)

        if property in self.multi_valued_properties:
            chosen = groups
            method = "provider_union"
        else:
            def rank(group: List[ProviderField]) -> Tuple[int, int]:
                agreeing = len(_distinct_providers(group))
                first = min(provider_order.get(f.provider, len(provider_order)) for f in group)
                return (-agreeing, first)
            chosen = [min(groups, key=rank)]
            method = "provider_majority"
            if len(groups) > 1:
                logger.debug(f"{self.rule_id}: {property} disagreement across {len(groups)} values for {isbn.isbn13}")

        provenance = self.provenance(inputs=(isbn.isbn13,), method=method)
        today = _date.today()
        statements = []
        for group in chosen:
            agreeing = _distinct_providers(group)
            cited = reporting if method == "provider_majority" else agreeing
            references = [_provider_reference(_first_field(fields, provider), today) for provider in cited]
            statement = (
                new_statement(subject, property, group[0].value)
                .with_references(references)
                .with_provenance(provenance)
                .with_support(f"{len(agreeing)}/{len(reporting)}")
                .with_confidence(len(agreeing) / len(reporting))
            )
            statements.append(statement)
        return statements


def _distinct_providers(fields: List[ProviderField]) -> List[str]:
    return list(dict.fromkeys(f.provider for f in fields))


def _first_field(fields: List[ProviderField], provider: str) -> ProviderField:
    return next(f for f in fields if f.provider == provider)


def _provider_reference(f: ProviderField, retrieved: _date) -> Reference:
    external_id = (f.id_property, f.record_id) if f.id_property and f.record_id else None
    return Reference(url=f.url, stated_in=f.stated_in, external_id=external_id,
                     retrieved=retrieved, method=f.provider)
