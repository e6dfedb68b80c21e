"""
Tests for InferenceEngine dispatch, validation and statistics.
"""
from __future__ import annotations

import asyncio

import pytest

from wd_infernal.errors import ValidationError
from wd_infernal.inference import InferenceConfig, InferenceEngine, get_default_rules
from wd_infernal.inference.model import ItemValue, new_statement
from wd_infernal.inference.queries import (
    AdminContainmentRequest, CountryAtYearRequest, NameGenderRequest, REQUEST_TYPES,
)
from wd_infernal.inference.rules import AdminContainmentRule, get_rule_registry
from wd_infernal.sources.interfaces import Sources


class SlowGraph:
    async def nearby_by_property(self, property, coordinate, radius_km):
        await asyncio.sleep(1)
        return []


class BareAdminRule(AdminContainmentRule):
    """Returns a statement without provenance."""

    async def run(self, request, sources, issues):
        return [new_statement(None, "P131", ItemValue("Q1"))]


def replace_rule(config, replacement):
    rules = [r for r in get_default_rules(config) if r.rule_id != replacement.rule_id]
    return rules + [replacement]


class TestEngineConstruction:
    """Tests for rule wiring at construction."""

    def test_default_rules(self, default_config, sources):
        """Test that every registered rule is wired by default."""
        engine = InferenceEngine(default_config, sources)
        assert {rule.rule_id for rule in engine.rules} == set(get_rule_registry())
        assert set(engine.stats) == set(get_rule_registry())

    def test_every_request_type_served(self, default_config, sources):
        """Test that each request type dispatches to a rule."""
        engine = InferenceEngine(default_config, sources)
        for request_type in REQUEST_TYPES:
            assert request_type in engine._dispatch

    def test_missing_rule(self, default_config, sources):
        """Test that an unserved request type is rejected at construction."""
        with pytest.raises(ValueError, match="No rule serves"):
            InferenceEngine(default_config, sources, rules=[AdminContainmentRule()])

    def test_duplicate_rule(self, default_config, sources):
        """Test that two rules serving one request type are rejected."""
        rules = get_default_rules(default_config) + [AdminContainmentRule()]
        with pytest.raises(ValueError, match="served by both"):
            InferenceEngine(default_config, sources, rules=rules)

    def test_rules_use_config(self, sources):
        """Test that configured parameters reach the rules."""
        config = InferenceConfig.from_dict({"nearby_radius_km": 2.5, "rule_confidence": {"admin_containment": 0.3}})
        engine = InferenceEngine(config, sources)
        rule = engine.rule_for(AdminContainmentRequest(0, 0))
        assert rule.radius_km == 2.5
        assert rule.confidence == 0.3

    def test_app_hooks_propagated(self, default_config, sources, hooks):
        """Test that the engine's app hooks are handed to every rule."""
        app_hooks = hooks()
        engine = InferenceEngine(default_config, sources, app_hooks=app_hooks)
        assert all(rule.app_hooks is app_hooks for rule in engine.rules)


class TestEngineRun:
    """Tests for InferenceEngine.run."""

    @pytest.mark.asyncio
    async def test_dispatch_and_stats(self, default_config, graph, sources):
        """Test that a request reaches its rule and statistics are recorded."""
        graph.add("Q100", "P17", "Q183")
        engine = InferenceEngine(default_config, sources)
        result = await engine.run(CountryAtYearRequest("Q100", 1900))

        assert result.rule_id == "country_at_year"
        assert [s.value for s in result.statements] == [ItemValue("Q183")]
        stats = engine.stats["country_at_year"]
        assert stats.invocations == 1
        assert stats.statements == 1
        assert stats.failures == 0

    @pytest.mark.asyncio
    async def test_issues_returned(self, default_config, graph, sources, qualifiers_for_interval):
        """Test that issues recorded by the rule are part of the result."""
        graph.add("Q100", "P17", "Q27306", qualifiers=qualifiers_for_interval(1701, 1918))
        graph.add("Q100", "P17", "Q7318", qualifiers=qualifiers_for_interval(1871, 1945))
        engine = InferenceEngine(default_config, sources)
        result = await engine.run(CountryAtYearRequest("Q100", 1900))
        assert [issue.issue_type for issue in result.issues] == ["ambiguous_interval"]
        assert engine.stats["country_at_year"].issues == 1

    @pytest.mark.asyncio
    async def test_disabled_rule(self, sources):
        """Test that a request for a disabled rule is rejected."""
        config = InferenceConfig.from_dict({"rules_enabled": {"name_gender": False}})
        engine = InferenceEngine(config, sources)
        assert "name_gender" not in engine.stats
        with pytest.raises(ValidationError, match="rule disabled: name_gender"):
            await engine.run(NameGenderRequest("Magnus Manske"))

    @pytest.mark.asyncio
    async def test_unknown_request(self, default_config, sources):
        """Test that an object that is not a request is rejected."""
        engine = InferenceEngine(default_config, sources)
        with pytest.raises(TypeError):
            await engine.run("Q42")

    @pytest.mark.asyncio
    async def test_validation_error_counted(self, default_config, sources):
        """Test that a malformed request propagates and counts as a failure."""
        engine = InferenceEngine(default_config, sources)
        with pytest.raises(ValidationError):
            await engine.run(AdminContainmentRequest("north", 0))
        assert engine.stats["admin_containment"].failures == 1
        assert engine.stats["admin_containment"].invocations == 0

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test that a slow rule is cut off after request_timeout_seconds."""
        config = InferenceConfig.from_dict({"request_timeout_seconds": 0.01})
        engine = InferenceEngine(config, Sources(graph=SlowGraph()))
        with pytest.raises(asyncio.TimeoutError):
            await engine.run(AdminContainmentRequest(0, 0))
        assert engine.stats["admin_containment"].failures == 1

    @pytest.mark.asyncio
    async def test_statement_without_provenance_rejected(self, default_config, sources):
        """Test that statements without rule provenance never leave the engine."""
        engine = InferenceEngine(default_config, sources, rules=replace_rule(default_config, BareAdminRule()))
        with pytest.raises(ValueError, match="no rule provenance"):
            await engine.run(AdminContainmentRequest(0, 0))
