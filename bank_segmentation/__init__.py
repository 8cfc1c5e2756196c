"""
Bank Customer Segmentation Suite
================================

RFM scoring and scalable K-Means clustering of banking customers:
- Transaction aggregation into per-customer Recency/Frequency/Monetary
- Quintile RFM scores and value segments
- Two-phase K-Means (subsample restarts, full-data refinement)
- Per-cluster profiles for analyst labeling

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Customer Analytics Team"

from .common import DataLoader, Preprocessor, Reporter, load_config
from .customer_segmentation import RFMFeatureEngineer, KMeansSegmenter, SegmentAnalyzer
from .pipeline import SegmentationPipeline

__all__ = [
    "DataLoader",
    "Preprocessor",
    "Reporter",
    "load_config",
    "RFMFeatureEngineer",
    "KMeansSegmenter",
    "SegmentAnalyzer",
    "SegmentationPipeline",
]
