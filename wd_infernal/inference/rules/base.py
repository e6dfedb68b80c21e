from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional, Protocol, Tuple, Type

from wd_infernal.app_hooks import AppHooks
from wd_infernal.errors import AdapterError, ValidationError
from wd_infernal.inference.model import Issue, Provenance, Statement, is_entity_id
from wd_infernal.sources.interfaces import Sources

logger = logging.getLogger(__name__)

_RULE_REGISTRY: Dict[str, Type['BaseRule']] = {}


def register_rule(rule_class: Type['BaseRule']) -> Type['BaseRule']:
    """
    Class decorator adding a rule to the registry, keyed by its rule_id.

    Raises:
        ValueError: If another class already registered the same rule_id.
    """
    rule_id = getattr(rule_class, 'rule_id', None)
    if not rule_id:
        raise ValueError(f"{rule_class.__name__} has no rule_id")
    existing = _RULE_REGISTRY.get(rule_id)
    if existing is not None and existing is not rule_class:
        raise ValueError(f"Duplicate rule id '{rule_id}': {existing.__name__} and {rule_class.__name__}")
    _RULE_REGISTRY[rule_id] = rule_class
    return rule_class


def get_rule_registry() -> Dict[str, Type['BaseRule']]:
    """Registered rule classes in registration order."""
    return dict(_RULE_REGISTRY)


class InferenceRule(Protocol):
    rule_id: str
    request_types: ClassVar[Tuple[type, ...]]

    async def run(self, request: Any, sources: Sources, issues: List[Issue]) -> List[Statement]:
        ...


@dataclass
class RuleStats:
    invocations: int = 0
    statements: int = 0
    issues: int = 0
    failures: int = 0

    def record(self, statements: int, issues: int) -> None:
        self.invocations += 1
        self.statements += statements
        self.issues += issues


@dataclass
class BaseRule:
    """
    Common behaviour for inference rules.

    Subclasses set ``rule_id`` and ``request_types`` and implement ``run``.
    Rules hold only immutable configuration; per-request state lives in locals.
    """
    rule_id: str = "base"
    confidence: float = 0.5
    app_hooks: Optional[AppHooks] = None

    request_types: ClassVar[Tuple[type, ...]] = ()

    async def run(self, request: Any, sources: Sources, issues: List[Issue]) -> List[Statement]:
        raise NotImplementedError

    def provenance(self, inputs: Tuple[Any, ...] = (), method: str = "", notes: str = "") -> Provenance:
        return Provenance(rule_id=self.rule_id, inputs=tuple(str(i) for i in inputs), method=method, notes=notes)

    def record_issue(
        self,
        issues: List[Issue],
        issue_type: str,
        message: str,
        severity: str = "warning",
        related_ids: Tuple[str, ...] = (),
    ) -> Issue:
        """Append an Issue for this rule and log it."""
        issue = Issue(issue_type=issue_type, severity=severity, message=message,
                      source=self.rule_id, related_ids=tuple(related_ids))
        issues.append(issue)
        if severity == "info":
            logger.info(f"{self.rule_id}: {message}")
        else:
            logger.warning(f"{self.rule_id}: {message}")
        return issue

    def record_adapter_failure(self, issues: List[Issue], error: BaseException, what: str,
                               issue_type: str = "adapter_failed",
                               related_ids: Tuple[str, ...] = ()) -> Issue:
        kind = error.kind if isinstance(error, AdapterError) else type(error).__name__
        source = error.source if isinstance(error, AdapterError) and error.source else "source"
        return self.record_issue(issues, issue_type, f"{source} {kind} for {what}: {error}",
                                 related_ids=related_ids)

    @staticmethod
    def require(source: Any, name: str) -> Any:
        if source is None:
            raise ValueError(f"Required source '{name}' is not configured")
        return source

    def _report_step(self, info: str = "", target: Optional[int] = None, reset_counter: bool = False, plus_step: int = 0) -> None:
        """
        Report a step via app hooks if available. (Private method)

        Args:
            info (str): Information message.
            target (int): Target count for progress.
            reset_counter (bool): Whether to reset the counter.
            plus_step (int): Incremental step count.
        """
        if self.app_hooks and callable(getattr(self.app_hooks, "report_step", None)):
            self.app_hooks.report_step(info=info, target=target, reset_counter=reset_counter, plus_step=plus_step)
        else:
            logger.debug(info)

    def _stop_requested(self, logger_stop_message: str = "Stop requested by user") -> bool:
        """
        Check if stop has been requested via app hooks. (Private method)

        Returns:
            bool: True if stop requested, False otherwise.
        """
        if self.app_hooks and callable(getattr(self.app_hooks, "stop_requested", None)):
            if self.app_hooks.stop_requested():
                if logger_stop_message:
                    logger.debug(logger_stop_message)
                return True
        return False


def normalize_item(value: Any, name: str = "item") -> str:
    """Upper-case and validate an entity id ('q42' -> 'Q42')."""
    if not isinstance(value, str):
        raise ValidationError(f"Invalid {name}: {value!r}")
    item = value.strip().upper()
    if not is_entity_id(item):
        raise ValidationError(f"Invalid {name}: {value!r}")
    return item


def normalize_int(value: Any, name: str) -> int:
    """Accept ints and integral strings; reject bools, floats and anything else."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {name}: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip('+-').isdigit():
            return int(text)
    raise ValidationError(f"Invalid {name}: {value!r}")
