from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from wd_infernal.app_hooks import AppHooks
from wd_infernal.errors import ValidationError
from wd_infernal.sources.interfaces import Sources

from .config import InferenceConfig
from .defaults import get_default_rules
from .model import Issue, Statement
from .queries import REQUEST_TYPES, Request
from .rules.base import BaseRule, RuleStats, get_rule_registry

logger = logging.getLogger(__name__)


@dataclass
class InferenceResult:
    rule_id: str
    statements: List[Statement] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)


class InferenceEngine:
    """
    Dispatches typed requests to the one rule registered for each request type.

    Every request type must be served by exactly one enabled rule or belong to
    a rule disabled in the configuration; this is checked at construction.
    """

    def __init__(self, config: InferenceConfig, sources: Sources, rules: Optional[Sequence[BaseRule]] = None,
                 app_hooks: Optional[AppHooks] = None) -> None:
        self.config = config
        self.sources = sources
        self.app_hooks = app_hooks
        self.rules = list(rules) if rules is not None else get_default_rules(config)
        self.stats: Dict[str, RuleStats] = {}

        for rule in self.rules:
            if hasattr(rule, 'app_hooks'):
                rule.app_hooks = app_hooks

        self._dispatch: Dict[type, BaseRule] = {}
        for rule in self.rules:
            if not config.rule_enabled(rule.rule_id):
                continue
            for request_type in rule.request_types:
                if request_type in self._dispatch:
                    other = self._dispatch[request_type].rule_id
                    raise ValueError(f"{request_type.__name__} is served by both '{other}' and '{rule.rule_id}'")
                self._dispatch[request_type] = rule
            self.stats[rule.rule_id] = RuleStats()

        disabled = {
            request_type: rule_id
            for rule_id, rule_class in get_rule_registry().items()
            if not config.rule_enabled(rule_id)
            for request_type in rule_class.request_types
        }
        self._disabled: Dict[type, str] = {}
        for request_type in REQUEST_TYPES:
            if request_type in self._dispatch:
                continue
            if request_type in disabled:
                self._disabled[request_type] = disabled[request_type]
                continue
            raise ValueError(f"No rule serves {request_type.__name__}")

    def rule_for(self, request: Request) -> BaseRule:
        """
        Raises:
            ValidationError: If the request's rule is disabled.
            TypeError: If the object is not a known request type.
        """
        request_type = type(request)
        if request_type in self._disabled:
            raise ValidationError(f"rule disabled: {self._disabled[request_type]}")
        rule = self._dispatch.get(request_type)
        if rule is None:
            raise TypeError(f"Unknown request type {request_type.__name__}")
        return rule

    async def run(self, request: Request) -> InferenceResult:
        """
        Run the rule for ``request`` within ``request_timeout_seconds``.

        Returns:
            InferenceResult: The rule's statements in rule order plus the issues recorded.
        Raises:
            ValidationError: Malformed request or disabled rule.
            AdapterError: Every source for a required input failed.
            asyncio.TimeoutError: The request did not finish in time.
        """
        rule = self.rule_for(request)
        stats = self.stats[rule.rule_id]
        issues: List[Issue] = []
        logger.debug(f"Running {rule.rule_id} for {request}")
        try:
            statements = await asyncio.wait_for(
                rule.run(request, self.sources, issues),
                timeout=self.config.request_timeout_seconds,
            )
        except asyncio.TimeoutError:
            stats.failures += 1
            logger.warning(f"{rule.rule_id} timed out after {self.config.request_timeout_seconds}s")
            raise
        except Exception:
            stats.failures += 1
            raise

        for statement in statements:
            statement.validate()
        stats.record(len(statements), len(issues))
        logger.info(f"{rule.rule_id}: {len(statements)} statements, {len(issues)} issues")
        return InferenceResult(rule_id=rule.rule_id, statements=list(statements), issues=issues)
