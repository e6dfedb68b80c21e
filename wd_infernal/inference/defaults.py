"""
Default inference rules configuration.
"""
from __future__ import annotations

from typing import List

from .config import InferenceConfig
from .rules import BaseRule, get_rule_registry


def _confidence(rule_id: str, default: float):
    return lambda cfg: cfg.confidence_for(rule_id, default)


# Rule parameter mapping: maps config fields to rule constructor parameters
RULE_PARAM_MAP = {
    'admin_containment': {
        'radius_km': 'nearby_radius_km',
        'max_results': 'nearby_max_results',
        'confidence': _confidence('admin_containment', 0.8),
    },
    'country_at_year': {
        'default_property': 'default_temporal_property',
        'max_depth': 'admin_chain_max_depth',
        'confidence': _confidence('country_at_year', 0.7),
    },
    'cross_categories': {
        'max_depth': 'max_category_depth',
        'contains_property': 'category_contains_property',
        'non_language_wikis': lambda cfg: tuple(cfg.non_language_wikis),
        'confidence': _confidence('cross_categories', 0.5),
    },
    'reference_mining': {
        'unsupported_entity_markers': lambda cfg: tuple(cfg.unsupported_entity_markers),
        'no_reference_properties': lambda cfg: tuple(cfg.no_reference_properties),
        'only_unreferenced': 'only_unreferenced_statements',
        'bad_url_fragments': lambda cfg: tuple(cfg.bad_url_fragments),
        'skip_url_fragments_for_property': 'skip_url_fragments_for_property',
        'non_language_wikis': lambda cfg: tuple(cfg.non_language_wikis),
        'context_chars': 'context_chars',
        'min_label_length': 'min_label_length',
        'default_language': 'default_language',
        'confidence': _confidence('reference_mining', 0.6),
    },
    'isbn_reconciliation': {
        'string_match_threshold': 'string_match_threshold',
        'multi_valued_properties': lambda cfg: tuple(cfg.multi_valued_properties),
        'confidence': _confidence('isbn_reconciliation', 0.9),
    },
    'name_gender': {
        'gender_threshold': 'gender_threshold',
        'confidence': _confidence('name_gender', 0.8),
    },
    'initials_search': {
        'confidence': _confidence('initials_search', 0.5),
    },
    'authority_search': {
        'code_properties': lambda cfg: dict(cfg.authority_code_properties),
        'confidence': _confidence('authority_search', 0.6),
    },
}


def get_default_rules(config: InferenceConfig) -> List[BaseRule]:
    """
    Create default inference rules based on config using the rule registry.

    Automatically discovers all registered rules and instantiates the enabled
    ones with appropriate config values.

    Args:
        config: InferenceConfig instance with rule parameters.

    Returns:
        List[BaseRule]: List of configured rules from the registry.
    """
    registry = get_rule_registry()
    rules = []

    for rule_id, rule_class in registry.items():
        if not config.rule_enabled(rule_id):
            continue

        param_map = RULE_PARAM_MAP.get(rule_id, {})

        kwargs = {}
        for param_name, config_key in param_map.items():
            if callable(config_key):
                kwargs[param_name] = config_key(config)
            else:
                kwargs[param_name] = getattr(config, config_key)

        rules.append(rule_class(**kwargs))

    return rules
