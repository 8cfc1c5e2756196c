"""
Common utilities for the bank segmentation suite.
"""

from .config import DEFAULT_CONFIG, load_config
from .data_loader import DataLoader
from .preprocessing import Preprocessor
from .reporting import Reporter

__all__ = ["DEFAULT_CONFIG", "load_config", "DataLoader", "Preprocessor", "Reporter"]
