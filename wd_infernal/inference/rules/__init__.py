"""Inference rules: one rule per request type, each producing provenance-annotated statements.

Built-in rules:
    - AdminContainmentRule: P131 of a coordinate from nearby entities
    - CountryAtYearRule: country (or another property) of an item at a given year
    - CrossCategoriesRule: members of a category tree across language wikis
    - ReferenceMiningRule: references for statements from linked web pages
    - IsbnReconciliationRule: book statements reconciled across metadata providers
    - NameGenderRule: given names, family name and gender from a full name
    - InitialsSearchRule: humans whose names expand a query with initials
    - AuthoritySearchRule: VIAF clusters and their member identifiers

Extensibility:
    Create custom rules by:
        1. Subclass BaseRule
        2. Set request_types and implement async run(request, sources, issues)
        3. Use @register_rule decorator for automatic registration
"""

from .base import InferenceRule
from .base import BaseRule
from .base import RuleStats
from .base import register_rule
from .base import get_rule_registry
from .admin_containment import AdminContainmentRule
from .country_at_year import CountryAtYearRule
from .cross_categories import CrossCategoriesRule
from .reference_mining import ReferenceMiningRule
from .isbn_reconciliation import IsbnReconciliationRule
from .name_gender import NameGenderRule
from .initials_search import InitialsSearchRule
from .authority_search import AuthoritySearchRule

__all__ = [
    'InferenceRule',
    'BaseRule',
    'RuleStats',
    'register_rule',
    'get_rule_registry',
    'AdminContainmentRule',
    'CountryAtYearRule',
    'CrossCategoriesRule',
    'ReferenceMiningRule',
    'IsbnReconciliationRule',
    'NameGenderRule',
    'InitialsSearchRule',
    'AuthoritySearchRule',
]
