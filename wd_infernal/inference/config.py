from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def _load_yaml(yaml_path: Path) -> Dict[str, Any]:
    if not yaml_path or not Path(yaml_path).exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")
    try:
        with open(yaml_path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing {yaml_path}: {e}")
    if not isinstance(config_dict, dict):
        raise ValueError(f"Error parsing {yaml_path}: top level must be a mapping")
    return config_dict


@dataclass(frozen=True)
class InferenceConfig:
    """
    Configuration for the inference rules and source adapters.

    Loads all configuration values from config.yaml in the inference directory.
    Instances are immutable and passed explicitly to every rule.
    """
    # Time limits and HTTP
    request_timeout_seconds: float = field(init=False)
    http_timeout_seconds: float = field(init=False)
    http_max_concurrency: int = field(init=False)
    user_agent: str = field(init=False)
    wikidata_api_url: str = field(init=False)
    sparql_url: str = field(init=False)
    default_language: str = field(init=False)

    # admin_containment
    nearby_radius_km: float = field(init=False)
    nearby_max_results: int = field(init=False)

    # country_at_year
    default_temporal_property: str = field(init=False)
    admin_chain_max_depth: int = field(init=False)

    # cross_categories
    max_category_depth: int = field(init=False)
    category_contains_property: str = field(init=False)
    non_language_wikis: List[str] = field(init=False)

    # reference_mining
    unsupported_entity_markers: List[str] = field(init=False)
    no_reference_properties: List[str] = field(init=False)
    only_unreferenced_statements: bool = field(init=False)
    bad_url_fragments: List[str] = field(init=False)
    max_page_bytes: int = field(init=False)
    skip_url_fragments_for_property: Dict[str, List[str]] = field(init=False)
    context_chars: int = field(init=False)
    min_label_length: int = field(init=False)

    # isbn_reconciliation
    string_match_threshold: float = field(init=False)
    multi_valued_properties: List[str] = field(init=False)

    # name_gender
    gender_threshold: float = field(init=False)

    # authority_search
    authority_code_properties: Dict[str, str] = field(init=False)

    # Rule confidence levels (nested dict)
    rule_confidence: Dict[str, float] = field(init=False)

    # Rule toggles (nested dict)
    rules_enabled: Dict[str, bool] = field(init=False)

    def __post_init__(self):
        """Load configuration from the packaged YAML file."""
        config_dict = _load_yaml(DEFAULT_CONFIG_PATH)
        for key in self.__dataclass_fields__.keys():
            if key not in config_dict:
                raise ValueError(f"Required configuration field '{key}' not found in config.yaml")
            object.__setattr__(self, key, config_dict[key])

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> InferenceConfig:
        """
        Load configuration from a specific YAML file.

        Keys missing from the file are filled from the packaged default.

        Args:
            yaml_path: Path to YAML config file.

        Returns:
            InferenceConfig: Configuration instance loaded from YAML.
        """
        return cls.from_dict(_load_yaml(Path(yaml_path)))

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None) -> InferenceConfig:
        """
        Create configuration from a dictionary.

        Args:
            config_dict (Dict[str, Any]): Dictionary with configuration values.
            defaults (Dict[str, Any]): Values for missing keys; the packaged
                config.yaml when omitted.
        Returns:
            InferenceConfig: Configuration instance.
        """
        if defaults is None:
            defaults = _load_yaml(DEFAULT_CONFIG_PATH)
        for key in config_dict:
            if key not in cls.__dataclass_fields__:
                logger.warning(f"Ignoring unknown configuration key '{key}'")

        instance = object.__new__(cls)
        for key in cls.__dataclass_fields__.keys():
            if key in config_dict:
                value = config_dict[key]
            elif key in defaults:
                value = defaults[key]
            else:
                raise ValueError(f"Required configuration field '{key}' not found")
            object.__setattr__(instance, key, value)
        return instance

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, key) for key in self.__dataclass_fields__.keys()}

    def rule_enabled(self, rule_id: str) -> bool:
        # default: enabled unless explicitly false
        return self.rules_enabled.get(rule_id, True)

    def confidence_for(self, rule_id: str, default: float = 0.5) -> float:
        return float(self.rule_confidence.get(rule_id, default))
