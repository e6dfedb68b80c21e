"""
Tests for the statement model: values, qualifiers, references, statements and intervals.
"""
from __future__ import annotations

from datetime import date as _date

import pytest

from wd_infernal.inference.model import (
    CONFIDENCE, RULE, DateRange, ItemValue, MonolingualTextValue, Provenance, QuantityValue, Qualifier,
    Reference, Statement, StringValue, TimeValue, new_statement, value_from_datavalue,
)


@pytest.fixture
def statement():
    return new_statement("Q42", "P27", ItemValue("Q145"))


class TestValues:
    """Tests for value JSON conversion."""

    def test_item_datavalue(self):
        """Test the Wikibase entity id datavalue."""
        assert ItemValue("Q145").to_datavalue() == {
            "type": "wikibase-entityid",
            "value": {"entity-type": "item", "id": "Q145", "numeric-id": 145},
        }

    def test_item_from_numeric_id(self):
        """Test that a datavalue with only a numeric id is understood."""
        value = value_from_datavalue({"type": "wikibase-entityid",
                                      "value": {"entity-type": "item", "numeric-id": 5}})
        assert value == ItemValue("Q5")

    def test_quantity_amount_text(self):
        """Test signed amounts and entity units."""
        data = QuantityValue(0.25, "Q828224").to_datavalue()["value"]
        assert data["amount"] == "+0.25"
        assert data["unit"] == "http://www.wikidata.org/entity/Q828224"
        assert QuantityValue(3.0).to_datavalue()["value"] == {"amount": "+3", "unit": "1"}

    def test_quantity_unit_parsed(self):
        """Test that entity URIs are stripped from parsed units."""
        value = value_from_datavalue({"type": "quantity", "value": {
            "amount": "+224", "unit": "http://www.wikidata.org/entity/Q828224"}})
        assert value == QuantityValue(224.0, "Q828224")

    def test_time_year(self):
        """Test that a year value has year precision."""
        value = TimeValue.from_year(1900)
        assert value.precision == 9
        assert value.year == 1900

    def test_unmodelled_type(self):
        """Test that unknown datavalue types give None."""
        assert value_from_datavalue({"type": "musical-notation", "value": "c d e"}) is None


class TestStatement:
    """Tests for Statement builders and accessors."""

    def test_builders_are_pure(self, statement):
        """Test that builders return new statements."""
        qualified = statement.with_qualifier("P580", TimeValue.from_year(1900))
        assert statement.qualifiers == ()
        assert len(qualified.qualifiers) == 1

    def test_references_appended(self, statement):
        """Test that adding several references keeps the existing ones, like with_reference."""
        first = Reference(stated_in="Q36578")
        result = statement.with_reference(first).with_references(
            [Reference(heuristic="Q131287902"), Reference(url="https://a.example")])
        assert result.references[0] == first
        assert len(result.references) == 3
        assert statement.references == ()

    def test_provenance_qualifiers(self, statement):
        """Test that provenance becomes derivation qualifiers."""
        result = statement.with_provenance(Provenance("country_at_year", inputs=("Q42", "1900"), method="chain"))
        assert result.rule_id == "country_at_year"
        assert {q.kind for q in result.qualifiers} == {"derivation"}
        assert [q.value.text for q in result.qualifiers if q.property == "infernal:input"] == ["Q42", "1900"]

    def test_confidence(self, statement):
        """Test the trust qualifier for confidence."""
        result = statement.with_confidence(0.123456)
        assert result.confidence == 0.1235
        assert result.qualifiers_of_kind("trust")[0].property == CONFIDENCE

    @pytest.mark.parametrize("confidence", [-0.1, 1.5])
    def test_confidence_range(self, statement, confidence):
        """Test that confidences outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            statement.with_confidence(confidence)

    def test_support_depth_default(self, statement):
        """Test support, depth and default qualifiers."""
        result = statement.with_support("2/3").with_depth(1).as_default()
        assert result.support == "2/3"
        assert result.depth == 1
        assert result.is_default
        assert statement.with_support(4).support == 4

    def test_validate(self, statement):
        """Test that only statements with rule provenance validate."""
        with pytest.raises(ValueError):
            statement.validate()
        statement.with_provenance(Provenance("r")).validate()

    @pytest.mark.parametrize("kwargs", [{"subject": "Berlin"}, {"property": "country"}, {"rank": "best"}])
    def test_validate_malformed(self, statement, kwargs):
        """Test that malformed ids and ranks fail validation."""
        bad = Statement(**{**dict(property="P27", value=ItemValue("Q145"), subject="Q42"), **kwargs})
        with pytest.raises(ValueError):
            bad.with_provenance(Provenance("r")).validate()

    def test_to_json(self, statement):
        """Test the Wikibase-shaped JSON of a candidate statement."""
        data = (statement.with_qualifier("P580", TimeValue.from_year(1900))
                .with_provenance(Provenance("country_at_year"))
                .with_reference(Reference(heuristic="Q131287902"))
                .to_json())
        assert data["subject"] == "Q42"
        assert data["mainsnak"]["property"] == "P27"
        assert data["mainsnak"]["datatype"] == "wikibase-item"
        assert data["qualifiers-order"] == ["P580", RULE]
        assert data["references"][0]["snaks-order"] == ["P887"]
        assert "id" not in data

    def test_synthetic_subject_omitted(self):
        """Test that statements without a subject have no subject key."""
        assert "subject" not in new_statement(None, "P131", ItemValue("Q1")).to_json()

    def test_from_json(self):
        """Test parsing a claim as returned by wbgetentities."""
        claim = {
            "id": "Q64$1",
            "rank": "preferred",
            "mainsnak": {"snaktype": "value", "property": "P17", "datatype": "wikibase-item",
                         "datavalue": {"type": "wikibase-entityid", "value": {"id": "Q183"}}},
            "qualifiers": {"P580": [{"snaktype": "value", "property": "P580", "datavalue": {
                "type": "time", "value": {"time": "+1990-10-03T00:00:00Z", "precision": 11}}}]},
            "references": [{"snaks": {
                "P248": [{"snaktype": "value", "property": "P248", "datavalue": {
                    "type": "wikibase-entityid", "value": {"id": "Q36578"}}}],
                "P227": [{"snaktype": "value", "property": "P227", "datatype": "external-id",
                          "datavalue": {"type": "string", "value": "4005728-8"}}],
            }}],
        }
        statement = Statement.from_json(claim, subject="Q64")
        assert statement.subject == "Q64"
        assert statement.value == ItemValue("Q183")
        assert statement.rank == "preferred"
        assert statement.id == "Q64$1"
        assert DateRange.from_statement(statement) == DateRange(1990, None)
        reference = statement.references[0]
        assert reference.stated_in == "Q36578"
        assert reference.external_id == ("P227", "4005728-8")

    def test_from_json_somevalue(self):
        """Test that 'somevalue' claims are skipped."""
        assert Statement.from_json({"mainsnak": {"snaktype": "somevalue", "property": "P17"}}) is None


class TestReference:
    """Tests for Reference."""

    def test_same_url(self):
        """Test that references with the same URL cite the same source."""
        assert Reference(url="https://a.example").cites_same_source(Reference(url="https://a.example"))

    def test_same_external_id(self):
        """Test that references with the same external id cite the same source."""
        a = Reference(stated_in="Q1", external_id=("P675", "x"))
        assert a.cites_same_source(Reference(external_id=("P675", "x"), url="https://b.example"))

    def test_stated_in_only(self):
        """Test that bare stated-in references compare by stated-in."""
        assert Reference(stated_in="Q1").cites_same_source(Reference(stated_in="Q1"))
        assert not Reference(stated_in="Q1", url="https://a.example").cites_same_source(Reference(stated_in="Q1"))

    def test_json(self):
        """Test reference snaks with language, excerpts and retrieval date."""
        reference = Reference(url="https://a.example", stated_in="Q1", retrieved=_date(2024, 5, 1), language="en")
        data = reference.to_json()
        assert data["snaks-order"] == ["P248", "P854", "P813"]
        assert data["language"] == "en"
        parsed = Reference.from_json(data)
        assert parsed.url == "https://a.example"
        assert parsed.retrieved == _date(2024, 5, 1)


class TestQualifier:
    """Tests for Qualifier kinds."""

    def test_internal_kinds(self):
        """Test that internal properties get their derivation or trust kind."""
        assert Qualifier.internal(RULE, StringValue("x")).kind == "derivation"
        assert Qualifier.internal(CONFIDENCE, QuantityValue(0.5)).kind == "trust"

    def test_value_kind(self):
        """Test that ordinary qualifiers are value qualifiers."""
        assert Qualifier("P585", TimeValue.from_year(1900)).kind == "value"

    def test_monolingual_text(self):
        """Test monolingual text values as qualifiers."""
        qualifier = Qualifier("P1476", MonolingualTextValue("Titel", "de"))
        assert str(qualifier.value) == "Titel"


class TestDateRange:
    """Tests for DateRange."""

    def test_contains(self):
        """Test inclusive and open-ended bounds."""
        assert DateRange(1871, 1918).contains(1918)
        assert not DateRange(1871, 1918).contains(1919)
        assert DateRange(None, 1918).contains(1000)
        assert DateRange().is_empty()

    def test_intersect(self):
        """Test overlapping and disjoint ranges."""
        assert DateRange(1900, 1950).intersect(DateRange(1940, None)) == DateRange(1940, 1950)
        assert DateRange(1900, 1910).intersect(DateRange(1920, 1930)) is None
