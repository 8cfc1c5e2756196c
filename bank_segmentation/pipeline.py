"""
Segmentation Pipeline
=====================

Runs the batch analysis end to end:

    transactions -> per-customer RFM -> scores/segments -> scaled features
    -> elbow curve -> two-phase K-Means -> cluster profiles

Usage:
    from bank_segmentation import SegmentationPipeline

    pipeline = SegmentationPipeline(load_config("config/settings.yaml"))
    results = pipeline.run_from_file("data/bank_transactions.csv", n_clusters=5)
    pipeline.write_report(results, "outputs")
"""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd
from loguru import logger

from .common import DEFAULT_CONFIG, DataLoader, Preprocessor, Reporter
from .common.config import merge_config
from .customer_segmentation import KMeansSegmenter, RFMFeatureEngineer, SegmentAnalyzer


class SegmentationPipeline:
    """
    Batch driver for RFM scoring and customer clustering.

    Each stage either succeeds completely or raises; there is no
    mid-pipeline recovery.

    Example:
        >>> pipeline = SegmentationPipeline()
        >>> results = pipeline.run(transactions, n_clusters=4)
        >>> results['cluster_summary']
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Args:
            config: Suite configuration; missing keys fall back to defaults
        """
        self.config = merge_config(DEFAULT_CONFIG, config or {})
        self.preprocessor = Preprocessor()
        self.engineer = RFMFeatureEngineer(**self.config['rfm'])
        self.segmenter = self._build_segmenter()
        self.analyzer = SegmentAnalyzer()

    def _build_segmenter(self) -> KMeansSegmenter:
        params = self.config['clustering']
        return KMeansSegmenter(
            n_clusters=params['n_clusters'],
            k_max=params['k_max'],
            elbow_sample_size=params['elbow_sample_size'],
            fit_sample_size=params['fit_sample_size'],
            n_init=params['n_init'],
            elbow_n_init=params['elbow_n_init'],
            sample_max_iter=params['sample_max_iter'],
            refine_max_iter=params['refine_max_iter'],
            init=params['init'],
            random_state=params['random_state']
        )

    def run_from_file(
        self,
        filepath: Union[str, Path],
        n_clusters: Optional[int] = None
    ) -> Dict[str, Any]:
        """Load a transaction file and run the pipeline on it."""
        transactions = DataLoader(self.config).load_transactions(filepath)
        return self.run(transactions, n_clusters=n_clusters)

    def run(
        self,
        transactions: pd.DataFrame,
        n_clusters: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ) -> Dict[str, Any]:
        """
        Run every stage on a canonical transaction table.

        Args:
            transactions: Canonical transaction DataFrame
            n_clusters: Chosen k; falls back to the configured value, then
                to the elbow suggestion
            rng: Random generator shared by sampling and initialization;
                when omitted, independent streams are spawned from the
                configured seed for the elbow curve and the fit

        Returns:
            Dictionary with customers, cluster_summary, centroids,
            elbow_curve, metrics, suggested_k, reference_date,
            segment_counts and config
        """
        logger.info("Starting customer segmentation pipeline")

        scored, complete, scaled = self.prepare_features(transactions)
        features = self.config['clustering']['features']

        # Elbow curve, then the two-phase fit
        elbow_rng, fit_rng = self._random_streams(rng)
        curve = self.segmenter.elbow_curve(scaled, rng=elbow_rng)
        suggested_k = self.segmenter.suggest_k(curve)

        k = n_clusters
        if k is None:
            k = self.config['clustering']['n_clusters']
        if k is None:
            k = suggested_k
            logger.warning(f"No cluster count given; using elbow suggestion k={k}")

        self.segmenter.fit(scaled, n_clusters=k, rng=fit_rng)

        # Attach clusters and profile
        customers = scored.copy()
        customers['cluster'] = pd.Series(pd.NA, index=customers.index, dtype='Int64')
        customers.loc[complete.index, 'cluster'] = self.segmenter.labels_

        clustered = customers[customers['cluster'].notna()]
        summary = self.analyzer.profile_clusters(clustered, 'cluster')

        centroids = self.preprocessor.inverse_scale(self.segmenter.cluster_centers_, features)
        centroids.index = pd.Index(range(1, k + 1), name='cluster')

        metrics = self.segmenter.get_cluster_metrics()
        metrics['n_unclustered'] = int(len(customers) - len(clustered))

        logger.info(f"\n{self.analyzer.summarize(summary, metrics)}")
        logger.info("Segmentation pipeline complete")

        return {
            'customers': customers,
            'cluster_summary': summary,
            'centroids': centroids,
            'elbow_curve': curve,
            'metrics': metrics,
            'suggested_k': suggested_k,
            'reference_date': self.engineer.reference_date_,
            'segment_counts': customers['segment'].value_counts().to_dict(),
            'config': self.config
        }

    def prepare_features(
        self,
        transactions: pd.DataFrame
    ) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
        """
        Aggregate, score, resolve missing features and scale.

        Returns:
            Tuple of (scored customers, customers with complete features,
            scaled feature matrix indexed like the complete rows)
        """
        rfm = self.engineer.calculate_rfm(transactions)
        scored = self.engineer.calculate_rfm_scores(rfm)

        features = self.config['clustering']['features']
        prep = self.config['preprocessing']
        complete = self.preprocessor.handle_missing(
            scored, features, policy=prep['missing_feature_policy']
        )
        # Clipping only touches the matrix being clustered
        to_scale = complete
        if prep.get('outlier_zscore'):
            to_scale = self.preprocessor.handle_outliers(
                complete, features, threshold=prep['outlier_zscore']
            )
        scaled = self.preprocessor.scale_features(to_scale, features)

        return scored, complete, scaled

    def elbow(
        self,
        transactions: pd.DataFrame,
        rng: Optional[np.random.Generator] = None
    ) -> Tuple[pd.DataFrame, int]:
        """
        Elbow curve and suggested k, without fitting.

        Uses the same features and the same random stream as run(), so the
        curve matches the one reported by a full run with this config.

        Returns:
            Tuple of (curve DataFrame with 'k' and 'within_ss', suggested k)
        """
        _, _, scaled = self.prepare_features(transactions)
        elbow_rng, _ = self._random_streams(rng)

        curve = self.segmenter.elbow_curve(scaled, rng=elbow_rng)
        return curve, self.segmenter.suggest_k(curve)

    def _random_streams(self, rng: Optional[np.random.Generator]):
        if rng is not None:
            return rng, rng
        seed_seq = np.random.SeedSequence(self.config['clustering']['random_state'])
        elbow_seq, fit_seq = seed_seq.spawn(2)
        return np.random.default_rng(elbow_seq), np.random.default_rng(fit_seq)

    def write_report(
        self,
        results: Dict[str, Any],
        output_dir: Optional[Union[str, Path]] = None,
        report_name: str = "segmentation"
    ) -> Dict[str, Path]:
        """Write results to the output directory."""
        output_dir = output_dir or self.config['output']['dir']
        return Reporter(output_dir=str(output_dir)).generate_segmentation_report(
            results, report_name
        )
