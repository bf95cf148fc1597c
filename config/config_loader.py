"""
config_loader.py
-----------------
Singleton config loader. Reads config.yaml once and caches it.
Every model reads its thresholds, weights and lookup tables through this
module; constructor arguments only override what is loaded here.
"""

import os
import yaml
from typing import Any, Dict


_CONFIG_CACHE: Dict[str, Any] = {}

REQUIRED_SECTIONS = (
    "category_keywords",
    "merchant_mappings",
    "forecasting",
    "categorization",
    "anomaly",
    "budget",
    "optimization",
    "reference_spending",
    "service",
)


def load_config(config_path: str | None = None) -> Dict[str, Any]:
    """
    Load and cache the YAML configuration file.

    Args:
        config_path: Path to config.yaml. Defaults to config/ relative to this
            file. Passing a path always reloads the cache from that file.

    Returns:
        Full config dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        KeyError: If a required top-level section is missing.
    """
    global _CONFIG_CACHE

    if _CONFIG_CACHE and config_path is None:
        return _CONFIG_CACHE

    if config_path is None:
        config_path = os.path.join(os.path.dirname(__file__), "config.yaml")

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    missing = [s for s in REQUIRED_SECTIONS if s not in config]
    if missing:
        raise KeyError(f"Configuration {config_path} is missing sections: {missing}")

    _CONFIG_CACHE = config
    return _CONFIG_CACHE


def get_category_keywords() -> Dict[str, list[str]]:
    """Returns the keyword list per spending category."""
    return load_config()["category_keywords"]


def get_merchant_mappings() -> Dict[str, str]:
    """Returns the seeded merchant -> category map."""
    return load_config()["merchant_mappings"]


def get_forecasting_config() -> Dict[str, Any]:
    return load_config()["forecasting"]


def get_categorization_config() -> Dict[str, Any]:
    return load_config()["categorization"]


def get_anomaly_config() -> Dict[str, Any]:
    return load_config()["anomaly"]


def get_budget_config(recommender: str) -> Dict[str, Any]:
    """
    Returns the config block for one budget recommender.

    Raises:
        KeyError: If the recommender has no config block.
    """
    budget = load_config()["budget"]
    if recommender not in budget:
        raise KeyError(
            f"No budget config for '{recommender}'. "
            f"Available: {list(budget.keys())}"
        )
    return budget[recommender]


def get_optimization_config() -> Dict[str, Any]:
    return load_config()["optimization"]


def get_reference_spending() -> Dict[str, Dict[str, float]]:
    """Returns the benchmark monthly spending table used for comparisons."""
    return load_config()["reference_spending"]


def get_service_config() -> Dict[str, Any]:
    """Returns the analytics service defaults and minimum data thresholds."""
    return load_config()["service"]


def reset_config() -> None:
    """Clears cached config. Useful for testing."""
    global _CONFIG_CACHE
    _CONFIG_CACHE = {}
