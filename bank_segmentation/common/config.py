"""
Configuration Module
====================

Default settings for the segmentation suite and YAML overrides.

Usage:
    from bank_segmentation.common import load_config

    config = load_config("config/settings.yaml")
    n_init = config['clustering']['n_init']
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger


DEFAULT_CONFIG: Dict[str, Any] = {
    'data': {
        # canonical name -> column in the source file
        'columns': {
            'customer_id': 'CustomerID',
            'transaction_date': 'TransactionDate',
            'transaction_amount': 'TransactionAmount (INR)',
            'account_balance': 'CustAccountBalance',
            'gender': 'CustGender',
            'age': 'age',
        },
        'dob_column': None,
        'date_format': '%d/%m/%y',
        'dayfirst': True,
    },
    'rfm': {
        'n_bins': 5,
        'positive_gender': 'M',
        'negative_gender': 'F',
        'missing_date_policy': 'exclude',
        'demographic_rule': 'mode',
    },
    'preprocessing': {
        'missing_feature_policy': 'drop',
        'outlier_zscore': None,
    },
    'clustering': {
        'features': ['recency', 'frequency', 'monetary', 'gender_flag', 'age'],
        'n_clusters': None,
        'k_max': 10,
        'elbow_sample_size': 10000,
        'fit_sample_size': 500000,
        'n_init': 25,
        'elbow_n_init': 10,
        'sample_max_iter': 100,
        'refine_max_iter': 50,
        'init': 'k-means++',
        'random_state': 42,
    },
    'output': {
        'dir': 'outputs',
    },
    'logging': {
        'level': 'INFO',
    },
}


def merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``overrides`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file on top of the defaults.

    Args:
        config_path: Path to YAML configuration file (None for defaults only)

    Returns:
        Configuration dictionary

    Raises:
        ValueError: If the file does not contain a mapping
    """
    if config_path is None or not Path(config_path).exists():
        if config_path is not None:
            logger.warning(f"Config file not found: {config_path}, using defaults")
        return copy.deepcopy(DEFAULT_CONFIG)

    with open(config_path, 'r') as f:
        overrides = yaml.safe_load(f) or {}

    if not isinstance(overrides, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    logger.info(f"Loaded configuration from {config_path}")
    return merge_config(DEFAULT_CONFIG, overrides)
