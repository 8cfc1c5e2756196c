"""
Customer Segmentation Module
============================

RFM feature engineering and scalable K-Means clustering for bank customers.
"""

from .rfm_features import RFMFeatureEngineer, assign_segment
from .kmeans_clustering import KMeansSegmenter
from .segment_analysis import SegmentAnalyzer

__all__ = ["RFMFeatureEngineer", "assign_segment", "KMeansSegmenter", "SegmentAnalyzer"]
