"""Inference module: provenance-annotated candidate statements for Wikidata items.

Each rule combines graph evidence with an external corroborating source and
returns candidate statements. Nothing is written back to the knowledge graph.

Core classes:
    - InferenceEngine: Dispatches a typed request to its rule
    - InferenceResult: Statements and issues from one request
    - InferenceConfig: Immutable configuration loaded from config.yaml

Data models:
    - Statement: (subject, property, value) with qualifiers and references
    - Qualifier: value, derivation or trust qualifier
    - Reference: literal source descriptor
    - Provenance: rule id, inputs and method of an inference
    - Issue: adapter failure or ambiguity recorded while running a rule
    - DateRange: inclusive year interval

Example:
    >>> from wd_infernal.inference import InferenceConfig, InferenceEngine
    >>> from wd_infernal.inference.queries import CountryAtYearRequest
    >>> engine = InferenceEngine(InferenceConfig(), sources)
    >>> result = await engine.run(CountryAtYearRequest(item="Q1726", year=1900))
    >>> for statement in result.statements:
    ...     print(statement.property, statement.value, statement.confidence)
"""

from .model import Statement
from .model import Qualifier
from .model import Reference
from .model import Provenance
from .model import TextExcerpt
from .model import DateRange
from .model import Issue
from .config import InferenceConfig
from .queries import REQUEST_TYPES
from .rules import BaseRule
from .rules import RuleStats
from .defaults import get_default_rules
from .engine import InferenceEngine
from .engine import InferenceResult

__all__ = [
    'Statement',
    'Qualifier',
    'Reference',
    'Provenance',
    'TextExcerpt',
    'DateRange',
    'Issue',
    'InferenceConfig',
    'REQUEST_TYPES',
    'BaseRule',
    'RuleStats',
    'get_default_rules',
    'InferenceEngine',
    'InferenceResult',
]
