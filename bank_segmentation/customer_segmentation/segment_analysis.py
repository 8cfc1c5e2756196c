"""
Segment Analysis Module
=======================

Per-cluster summaries for analyst review. Clusters are described
numerically; turning a profile into a name ("inactive high balance",
"young frequent") is left to the analyst, who can attach the chosen
names with apply_cluster_labels().

Usage:
    from bank_segmentation.customer_segmentation import SegmentAnalyzer

    analyzer = SegmentAnalyzer()
    summary = analyzer.profile_clusters(customers, 'cluster')
    labeled = analyzer.apply_cluster_labels(customers, {1: 'Dormant', 2: 'Active'})
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Any
from loguru import logger


PROFILE_COLUMNS = [
    'recency',
    'frequency',
    'monetary',
    'avg_account_balance',
    'last_account_balance',
    'gender_flag',
    'age',
]


class SegmentAnalyzer:
    """
    Summary statistics for customer clusters and segments.

    Example:
        >>> analyzer = SegmentAnalyzer()
        >>> summary = analyzer.profile_clusters(df, 'cluster')
        >>> print(summary[['count', 'monetary_mean']])
    """

    def __init__(self):
        """Initialize SegmentAnalyzer."""
        logger.info("SegmentAnalyzer initialized")

    def profile_clusters(
        self,
        df: pd.DataFrame,
        cluster_column: str = 'cluster',
        value_columns: Optional[List[str]] = None
    ) -> pd.DataFrame:
        """
        One row per cluster with size and mean of each profiling metric.

        Args:
            df: Customer table with cluster assignments
            cluster_column: Column containing cluster ids
            value_columns: Metrics to average (profiling defaults if None;
                columns absent from ``df`` are skipped)

        Returns:
            DataFrame indexed by cluster id with 'count', 'percentage' and
            '<metric>_mean' columns

        Example:
            >>> summary = analyzer.profile_clusters(df, 'cluster')
        """
        if cluster_column not in df.columns:
            raise ValueError(f"Column '{cluster_column}' not found")
        if df.empty:
            raise ValueError("Cannot profile an empty customer table")

        value_columns = value_columns or PROFILE_COLUMNS
        value_columns = [c for c in value_columns if c in df.columns]

        grouped = df.groupby(cluster_column, sort=True)
        summary = grouped[value_columns].mean()
        summary.columns = [f'{c}_mean' for c in summary.columns]
        summary.insert(0, 'count', grouped.size())
        summary.insert(1, 'percentage', summary['count'] / len(df) * 100)

        logger.info(f"Profiled {len(summary)} clusters over {len(value_columns)} metrics")
        return summary

    def apply_cluster_labels(
        self,
        df: pd.DataFrame,
        labels: Dict[Any, str],
        cluster_column: str = 'cluster',
        label_column: str = 'cluster_label'
    ) -> pd.DataFrame:
        """
        Attach analyst-chosen names to clusters.

        Args:
            df: Table with cluster ids (customers or a cluster summary
                indexed by cluster)
            labels: Mapping of cluster id to name
            cluster_column: Column containing cluster ids; the index is used
                when the column is absent
            label_column: Output column

        Returns:
            Copy of ``df`` with the label column added

        Raises:
            ValueError: If some clusters have no label
        """
        df = df.copy()
        ids = df[cluster_column] if cluster_column in df.columns else df.index.to_series(index=df.index)

        unlabeled = sorted(set(ids.unique()) - set(labels))
        if unlabeled:
            raise ValueError(f"No label given for clusters: {unlabeled}")

        df[label_column] = ids.map(labels)
        return df

    def cross_tabulate(
        self,
        df: pd.DataFrame,
        row_column: str = 'segment',
        col_column: str = 'cluster',
        normalize: bool = False
    ) -> pd.DataFrame:
        """
        Contingency table between two labelings, e.g. RFM segment vs cluster.

        Args:
            df: Customer table
            row_column: Labels along the rows
            col_column: Labels along the columns
            normalize: Return row percentages instead of counts

        Returns:
            Contingency DataFrame
        """
        table = pd.crosstab(df[row_column], df[col_column])
        if normalize:
            table = table.div(table.sum(axis=1), axis=0) * 100
        return table

    def segment_distribution(
        self,
        df: pd.DataFrame,
        segment_column: str
    ) -> pd.DataFrame:
        """Segment size distribution, largest first."""
        sizes = df[segment_column].value_counts().reset_index()
        sizes.columns = ['segment', 'count']
        sizes['percentage'] = sizes['count'] / len(df) * 100
        sizes['cumulative_pct'] = sizes['percentage'].cumsum()

        return sizes

    def summarize(
        self,
        summary: pd.DataFrame,
        metrics: Optional[Dict[str, Any]] = None
    ) -> str:
        """Plain-text digest of a cluster summary for logs and reports."""
        n_customers = int(summary['count'].sum())
        lines = [
            "Cluster Profile Summary",
            "=" * 40,
            f"Total customers: {n_customers:,}",
            f"Number of clusters: {len(summary)}",
        ]
        if metrics and 'between_total_ratio' in metrics:
            lines.append(f"Between/total SS: {metrics['between_total_ratio']:.3f}")
        lines.append("")

        mean_columns = [c for c in summary.columns if c.endswith('_mean')]
        for cluster, row in summary.iterrows():
            stats = ', '.join(
                f"{c[:-5]}={row[c]:.2f}" for c in mean_columns if not np.isnan(row[c])
            )
            lines.append(
                f"  Cluster {cluster}: {int(row['count']):,} ({row['percentage']:.1f}%) {stats}"
            )

        return "\n".join(lines)
