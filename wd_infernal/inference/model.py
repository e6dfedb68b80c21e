"""
Provenance model for inferred statements.

Statements, qualifiers and references are immutable; every ``with_*`` helper
returns a new Statement. Derivation and trust qualifiers use the internal
``infernal:*`` property ids so they can never be confused with ordinary
Wikibase qualification.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import date as _date
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple, Union

from wd_infernal.wikidate import GREGORIAN_CALENDAR, PRECISION_DAY, PRECISION_YEAR, WikidataTime

ItemId = str  # e.g. 'Q42'
PropertyId = str  # e.g. 'P31', or an internal 'infernal:*' id
Confidence = float  # 0.0 to 1.0

ENTITY_PREFIX = "http://www.wikidata.org/entity/"
EARTH = ENTITY_PREFIX + "Q2"

# Internal derivation/trust vocabulary
RULE = "infernal:rule"
METHOD = "infernal:method"
INPUT = "infernal:input"
DEPTH = "infernal:depth"
CONFIDENCE = "infernal:confidence"
DEFAULT = "infernal:default"
SUPPORT = "infernal:support"

# Wikibase properties used for qualification and references
P_POINT_IN_TIME = "P585"
P_START_TIME = "P580"
P_END_TIME = "P582"
P_LENGTH = "P2043"
P_NAMED_AS = "P1810"
P_REFERENCE_URL = "P854"
P_STATED_IN = "P248"
P_RETRIEVED = "P813"
P_INFERRED_FROM = "P3452"
P_BASED_ON_HEURISTIC = "P887"

INFERNAL_HEURISTIC = "Q131287902"
KILOMETRE = "Q828224"

RANKS = ("preferred", "normal", "deprecated")

_ENTITY_RE = re.compile(r'^[QPL]\d+$')


def is_entity_id(value: Any) -> bool:
    """True for 'Q42', 'P31', 'L7'."""
    return isinstance(value, str) and bool(_ENTITY_RE.match(value))


# ---------- values ----------

@dataclass(frozen=True)
class ItemValue:
    id: ItemId
    datatype: str = field(default="wikibase-item", init=False)

    def to_datavalue(self) -> Dict[str, Any]:
        entity_type = "property" if self.id.startswith("P") else "item"
        value: Dict[str, Any] = {"entity-type": entity_type, "id": self.id}
        if self.id[1:].isdigit():
            value["numeric-id"] = int(self.id[1:])
        return {"type": "wikibase-entityid", "value": value}

    def __str__(self):
        return self.id


@dataclass(frozen=True)
class StringValue:
    """Plain string value; datatype is 'string', 'external-id', 'url' or 'commonsMedia'."""
    text: str
    datatype: str = "string"

    def to_datavalue(self) -> Dict[str, Any]:
        return {"type": "string", "value": self.text}

    def __str__(self):
        return self.text


@dataclass(frozen=True)
class MonolingualTextValue:
    text: str
    language: str
    datatype: str = field(default="monolingualtext", init=False)

    def to_datavalue(self) -> Dict[str, Any]:
        return {"type": "monolingualtext", "value": {"text": self.text, "language": self.language}}

    def __str__(self):
        return self.text


@dataclass(frozen=True)
class TimeValue:
    """Wikibase time value ('+1990-01-05T00:00:00Z' with precision 11)."""
    time: str
    precision: int = PRECISION_DAY
    calendarmodel: str = GREGORIAN_CALENDAR
    datatype: str = field(default="time", init=False)

    @classmethod
    def from_year(cls, year: int) -> TimeValue:
        return cls(WikidataTime.from_year(year).time, PRECISION_YEAR)

    @classmethod
    def from_date(cls, value: _date) -> TimeValue:
        return cls(WikidataTime.from_date(value).time, PRECISION_DAY)

    @property
    def parsed(self) -> Optional[WikidataTime]:
        return WikidataTime.parse(self.time, self.precision)

    @property
    def year(self) -> Optional[int]:
        parsed = self.parsed
        return parsed.year if parsed else None

    def to_datavalue(self) -> Dict[str, Any]:
        return {"type": "time", "value": {
            "time": self.time,
            "timezone": 0,
            "before": 0,
            "after": 0,
            "precision": self.precision,
            "calendarmodel": self.calendarmodel,
        }}

    def __str__(self):
        return self.time


@dataclass(frozen=True)
class QuantityValue:
    """Quantity; unit is an item id, or '1' for a unitless number."""
    amount: float
    unit: str = "1"
    datatype: str = field(default="quantity", init=False)

    def to_datavalue(self) -> Dict[str, Any]:
        amount = self.amount
        if isinstance(amount, float) and amount.is_integer():
            amount = int(amount)
        text = f"+{amount}" if amount >= 0 else str(amount)
        unit = self.unit if self.unit == "1" else ENTITY_PREFIX + self.unit
        return {"type": "quantity", "value": {"amount": text, "unit": unit}}

    def __str__(self):
        return str(self.amount) if self.unit == "1" else f"{self.amount} {self.unit}"


@dataclass(frozen=True)
class GlobeCoordinateValue:
    latitude: float
    longitude: float
    precision: Optional[float] = None
    globe: str = EARTH
    datatype: str = field(default="globe-coordinate", init=False)

    def to_datavalue(self) -> Dict[str, Any]:
        return {"type": "globecoordinate", "value": {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": None,
            "precision": self.precision,
            "globe": self.globe,
        }}

    def __str__(self):
        return f"{self.latitude},{self.longitude}"


Value = Union[ItemValue, StringValue, MonolingualTextValue, TimeValue, QuantityValue, GlobeCoordinateValue]


def value_from_datavalue(datavalue: Dict[str, Any], datatype: Optional[str] = None) -> Optional[Value]:
    """
    Build a value from Wikibase ``datavalue`` JSON.

    Returns None for value types this package does not model.
    """
    value_type = datavalue.get("type")
    value = datavalue.get("value")
    if value_type == "wikibase-entityid":
        entity_id = value.get("id")
        if not entity_id and value.get("numeric-id") is not None:
            prefix = "P" if value.get("entity-type") == "property" else "Q"
            entity_id = f"{prefix}{value['numeric-id']}"
        return ItemValue(entity_id)
    if value_type == "string":
        return StringValue(value, datatype or "string")
    if value_type == "monolingualtext":
        return MonolingualTextValue(value.get("text", ""), value.get("language", ""))
    if value_type == "time":
        return TimeValue(
            value.get("time", ""),
            int(value.get("precision", PRECISION_DAY)),
            value.get("calendarmodel", GREGORIAN_CALENDAR),
        )
    if value_type == "quantity":
        unit = value.get("unit", "1")
        if unit.startswith(ENTITY_PREFIX):
            unit = unit[len(ENTITY_PREFIX):]
        return QuantityValue(float(value.get("amount", "0")), unit)
    if value_type == "globecoordinate":
        return GlobeCoordinateValue(
            float(value.get("latitude")),
            float(value.get("longitude")),
            value.get("precision"),
            value.get("globe", EARTH),
        )
    return None


def _snak(property: PropertyId, value: Value) -> Dict[str, Any]:
    return {
        "snaktype": "value",
        "property": property,
        "datatype": value.datatype,
        "datavalue": value.to_datavalue(),
    }


def _snaks_json(pairs: Iterable[Tuple[PropertyId, Value]]) -> Tuple[Dict[str, List[Dict[str, Any]]], List[PropertyId]]:
    snaks: Dict[str, List[Dict[str, Any]]] = {}
    order: List[PropertyId] = []
    for property, value in pairs:
        if property not in snaks:
            snaks[property] = []
            order.append(property)
        snaks[property].append(_snak(property, value))
    return snaks, order


def _values_from_snaks(snaks: Dict[str, List[Dict[str, Any]]], order: Optional[List[str]] = None) -> List[Tuple[PropertyId, Value]]:
    pairs: List[Tuple[PropertyId, Value]] = []
    for property in order or list(snaks.keys()):
        for snak in snaks.get(property, []):
            if snak.get("snaktype", "value") != "value" or "datavalue" not in snak:
                continue
            value = value_from_datavalue(snak["datavalue"], snak.get("datatype"))
            if value is not None:
                pairs.append((property, value))
    return pairs


# ---------- qualifiers, provenance, references ----------

QualifierKind = Literal["value", "derivation", "trust"]

_KIND_BY_PROPERTY = {
    RULE: "derivation",
    METHOD: "derivation",
    INPUT: "derivation",
    DEPTH: "derivation",
    CONFIDENCE: "trust",
    DEFAULT: "trust",
    SUPPORT: "trust",
}


@dataclass(frozen=True)
class Qualifier:
    """
    A statement qualifier.

    Attributes:
        property (PropertyId): Wikibase property, or an internal 'infernal:*' id.
        value (Value): Qualifier value.
        kind (QualifierKind): 'value' for ordinary qualification, 'derivation' for
            how the value was derived, 'trust' for why it should be trusted.
    """
    property: PropertyId
    value: Value
    kind: QualifierKind = "value"

    @classmethod
    def internal(cls, property: PropertyId, value: Value) -> Qualifier:
        """Derivation or trust qualifier; the kind follows from the property."""
        return cls(property, value, _KIND_BY_PROPERTY[property])


@dataclass(frozen=True)
class Provenance:
    rule_id: str
    inputs: Tuple[str, ...] = ()
    method: str = ""
    notes: str = ""

    def to_qualifiers(self) -> Tuple[Qualifier, ...]:
        qualifiers = [Qualifier.internal(RULE, StringValue(self.rule_id))]
        if self.method:
            qualifiers.append(Qualifier.internal(METHOD, StringValue(self.method)))
        for value in self.inputs:
            qualifiers.append(Qualifier.internal(INPUT, StringValue(str(value))))
        return tuple(qualifiers)


@dataclass(frozen=True, order=True)
class TextExcerpt:
    """A regex match in a page: context before, the match, context after."""
    before: str
    match: str
    after: str

    def to_json(self) -> List[str]:
        return [self.before, self.match, self.after]


@dataclass(frozen=True)
class Reference:
    """
    Literal source descriptor.

    Attributes:
        url (str): Reference URL (P854).
        stated_in (ItemId): Stated-in item (P248).
        external_id (Tuple[PropertyId, str]): External identifier snak.
        inferred_from (ItemId): Retrieval method item (P3452).
        heuristic (ItemId): Heuristic item (P887).
        retrieved (date): Retrieval date (P813).
        method (str): Internal retrieval method name, e.g. 'reference_mining'.
        language (str): Page language code.
        excerpts (Tuple[TextExcerpt, ...]): Matched text excerpts.
        extra (Tuple[Tuple[PropertyId, Value], ...]): Any other snaks.
    """
    url: Optional[str] = None
    stated_in: Optional[ItemId] = None
    external_id: Optional[Tuple[PropertyId, str]] = None
    inferred_from: Optional[ItemId] = None
    heuristic: Optional[ItemId] = None
    retrieved: Optional[_date] = None
    method: str = ""
    language: Optional[str] = None
    excerpts: Tuple[TextExcerpt, ...] = ()
    extra: Tuple[Tuple[PropertyId, Value], ...] = ()

    def cites_same_source(self, other: Reference) -> bool:
        """Same URL, or same external identifier, or same stated-in without either."""
        if self.url and other.url and self.url == other.url:
            return True
        if self.external_id and other.external_id and self.external_id == other.external_id:
            return True
        if (self.stated_in and self.stated_in == other.stated_in
                and not (self.url or self.external_id) and not (other.url or other.external_id)):
            return True
        return False

    def snak_pairs(self) -> List[Tuple[PropertyId, Value]]:
        pairs: List[Tuple[PropertyId, Value]] = []
        if self.heuristic:
            pairs.append((P_BASED_ON_HEURISTIC, ItemValue(self.heuristic)))
        if self.inferred_from:
            pairs.append((P_INFERRED_FROM, ItemValue(self.inferred_from)))
        if self.stated_in:
            pairs.append((P_STATED_IN, ItemValue(self.stated_in)))
        if self.external_id:
            pairs.append((self.external_id[0], StringValue(self.external_id[1], "external-id")))
        if self.url:
            pairs.append((P_REFERENCE_URL, StringValue(self.url, "url")))
        if self.method:
            pairs.append((METHOD, StringValue(self.method)))
        pairs.extend(self.extra)
        if self.retrieved:
            pairs.append((P_RETRIEVED, TimeValue.from_date(self.retrieved)))
        return pairs

    def to_json(self) -> Dict[str, Any]:
        snaks, order = _snaks_json(self.snak_pairs())
        result: Dict[str, Any] = {"snaks": snaks, "snaks-order": order}
        if self.language:
            result["language"] = self.language
        if self.excerpts:
            result["excerpts"] = [excerpt.to_json() for excerpt in self.excerpts]
        return result

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> Reference:
        """Parse a Wikibase reference; unrecognised snaks go to ``extra``."""
        kwargs: Dict[str, Any] = {}
        extra: List[Tuple[PropertyId, Value]] = []
        for property, value in _values_from_snaks(data.get("snaks", {}), data.get("snaks-order")):
            if property == P_REFERENCE_URL and isinstance(value, StringValue) and "url" not in kwargs:
                kwargs["url"] = value.text
            elif property == P_STATED_IN and isinstance(value, ItemValue) and "stated_in" not in kwargs:
                kwargs["stated_in"] = value.id
            elif property == P_INFERRED_FROM and isinstance(value, ItemValue) and "inferred_from" not in kwargs:
                kwargs["inferred_from"] = value.id
            elif property == P_BASED_ON_HEURISTIC and isinstance(value, ItemValue) and "heuristic" not in kwargs:
                kwargs["heuristic"] = value.id
            elif property == P_RETRIEVED and isinstance(value, TimeValue) and "retrieved" not in kwargs:
                parsed = value.parsed
                kwargs["retrieved"] = parsed.to_date() if parsed else None
            elif (isinstance(value, StringValue) and value.datatype == "external-id"
                    and "external_id" not in kwargs):
                kwargs["external_id"] = (property, value.text)
            else:
                extra.append((property, value))
        return cls(extra=tuple(extra), **kwargs)


# ---------- statements ----------

@dataclass(frozen=True)
class Statement:
    """
    A candidate statement: (subject, property, value) with qualifiers and references.

    ``subject`` is None for the synthetic subject of rules whose subject is
    implied by the request (e.g. "the entity at this coordinate").
    """
    property: PropertyId
    value: Value
    subject: Optional[ItemId] = None
    qualifiers: Tuple[Qualifier, ...] = ()
    references: Tuple[Reference, ...] = ()
    rank: str = "normal"
    id: Optional[str] = None

    # pure builders
    def with_qualifier(self, property: PropertyId, value: Value, kind: QualifierKind = "value") -> Statement:
        return replace(self, qualifiers=self.qualifiers + (Qualifier(property, value, kind),))

    def with_qualifiers(self, qualifiers: Iterable[Qualifier]) -> Statement:
        return replace(self, qualifiers=self.qualifiers + tuple(qualifiers))

    def with_reference(self, reference: Reference) -> Statement:
        return replace(self, references=self.references + (reference,))

    def with_references(self, references: Iterable[Reference]) -> Statement:
        return replace(self, references=self.references + tuple(references))

    def with_provenance(self, provenance: Provenance) -> Statement:
        return self.with_qualifiers(provenance.to_qualifiers())

    def with_confidence(self, confidence: Confidence) -> Statement:
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"Confidence out of range: {confidence}")
        return self.with_qualifiers([Qualifier.internal(CONFIDENCE, QuantityValue(round(confidence, 4)))])

    def with_depth(self, depth: int) -> Statement:
        return self.with_qualifiers([Qualifier.internal(DEPTH, QuantityValue(depth))])

    def with_support(self, support: Union[int, str]) -> Statement:
        value = QuantityValue(support) if isinstance(support, int) else StringValue(support)
        return self.with_qualifiers([Qualifier.internal(SUPPORT, value)])

    def as_default(self) -> Statement:
        return self.with_qualifiers([Qualifier.internal(DEFAULT, StringValue("true"))])

    # accessors
    def qualifier_values(self, property: PropertyId) -> List[Value]:
        return [q.value for q in self.qualifiers if q.property == property]

    def qualifiers_of_kind(self, kind: QualifierKind) -> List[Qualifier]:
        return [q for q in self.qualifiers if q.kind == kind]

    @property
    def rule_id(self) -> Optional[str]:
        values = self.qualifier_values(RULE)
        return values[0].text if values else None

    @property
    def confidence(self) -> Optional[Confidence]:
        values = self.qualifier_values(CONFIDENCE)
        return values[0].amount if values else None

    @property
    def is_default(self) -> bool:
        return bool(self.qualifier_values(DEFAULT))

    @property
    def support(self) -> Optional[Union[float, str]]:
        values = self.qualifier_values(SUPPORT)
        if not values:
            return None
        value = values[0]
        return value.amount if isinstance(value, QuantityValue) else value.text

    @property
    def depth(self) -> Optional[int]:
        values = self.qualifier_values(DEPTH)
        return int(values[0].amount) if values else None

    def has_reference_for(self, reference: Reference) -> bool:
        return any(existing.cites_same_source(reference) for existing in self.references)

    def validate(self) -> None:
        """Raise ValueError unless the statement is well formed and carries rule provenance."""
        if self.subject is not None and not is_entity_id(self.subject):
            raise ValueError(f"Invalid subject: {self.subject!r}")
        if not is_entity_id(self.property):
            raise ValueError(f"Invalid property: {self.property!r}")
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank!r}")
        if not self.rule_id:
            raise ValueError(f"Statement {self.property}={self.value} has no rule provenance")

    # JSON
    def to_json(self) -> Dict[str, Any]:
        qualifiers, order = _snaks_json((q.property, q.value) for q in self.qualifiers)
        result: Dict[str, Any] = {"type": "statement", "rank": self.rank}
        if self.id:
            result["id"] = self.id
        if self.subject is not None:
            result["subject"] = self.subject
        result["mainsnak"] = _snak(self.property, self.value)
        result["qualifiers"] = qualifiers
        result["qualifiers-order"] = order
        result["references"] = [reference.to_json() for reference in self.references]
        return result

    @classmethod
    def from_json(cls, claim: Dict[str, Any], subject: Optional[ItemId] = None) -> Optional[Statement]:
        """
        Parse a Wikibase claim. Returns None for 'somevalue'/'novalue' main snaks
        and value types that are not modelled.
        """
        mainsnak = claim.get("mainsnak", {})
        if mainsnak.get("snaktype", "value") != "value" or "datavalue" not in mainsnak:
            return None
        value = value_from_datavalue(mainsnak["datavalue"], mainsnak.get("datatype"))
        if value is None:
            return None
        qualifiers = tuple(
            Qualifier(property, qualifier_value, _KIND_BY_PROPERTY.get(property, "value"))
            for property, qualifier_value in _values_from_snaks(
                claim.get("qualifiers", {}), claim.get("qualifiers-order"))
        )
        references = tuple(Reference.from_json(ref) for ref in claim.get("references", []))
        return cls(
            property=mainsnak.get("property", ""),
            value=value,
            subject=subject if subject is not None else claim.get("subject"),
            qualifiers=qualifiers,
            references=references,
            rank=claim.get("rank", "normal"),
            id=claim.get("id"),
        )


def new_statement(subject: Optional[ItemId], property: PropertyId, value: Value) -> Statement:
    return Statement(property=property, value=value, subject=subject)


# ---------- intervals and issues ----------

@dataclass(frozen=True)
class DateRange:
    """
    Inclusive year interval. Use None for open-ended bounds.
    """
    earliest: Optional[int] = None
    latest: Optional[int] = None

    def is_empty(self) -> bool:
        """Check if both bounds are None."""
        return self.earliest is None and self.latest is None

    def is_inverted(self) -> bool:
        return self.earliest is not None and self.latest is not None and self.earliest > self.latest

    def intersect(self, other: DateRange) -> Optional[DateRange]:
        """Intersection of two ranges, or None if they do not overlap."""
        earliest = self.earliest if other.earliest is None else (
            other.earliest if self.earliest is None else max(self.earliest, other.earliest))
        latest = self.latest if other.latest is None else (
            other.latest if self.latest is None else min(self.latest, other.latest))
        result = DateRange(earliest, latest)
        return None if result.is_inverted() else result

    def contains(self, year: int) -> bool:
        """Check if a year is within the range."""
        if self.earliest is not None and year < self.earliest:
            return False
        if self.latest is not None and year > self.latest:
            return False
        return True

    @classmethod
    def from_statement(cls, statement: Statement) -> DateRange:
        """Interval from a statement's P580/P582 qualifiers at year granularity."""
        return cls(_first_year(statement, P_START_TIME), _first_year(statement, P_END_TIME))


def _first_year(statement: Statement, property: PropertyId) -> Optional[int]:
    for value in statement.qualifier_values(property):
        if isinstance(value, TimeValue) and value.year is not None:
            return value.year
    return None


@dataclass(frozen=True)
class Issue:
    issue_type: str
    severity: Literal["info", "warning", "error"]
    message: str
    source: Optional[str] = None
    related_ids: Tuple[str, ...] = ()
