"""
Reporting Module
================

Writes segmentation results as delimited text and a JSON run summary for
downstream reporting and plotting tools.

Usage:
    from bank_segmentation.common import Reporter

    reporter = Reporter(output_dir="outputs")
    paths = reporter.generate_segmentation_report(results)
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import List, Dict, Any
from datetime import datetime
import json
from loguru import logger


CUSTOMER_COLUMNS = [
    'customer_id',
    'recency',
    'frequency',
    'monetary',
    'avg_transaction_amount',
    'last_transaction_amount',
    'avg_account_balance',
    'last_account_balance',
    'gender_flag',
    'age',
    'recency_score',
    'frequency_score',
    'monetary_score',
    'rfm_score',
    'rfm_level',
    'segment',
    'cluster',
]


class Reporter:
    """
    Output writer for segmentation results.

    Example:
        >>> reporter = Reporter(output_dir="outputs")
        >>> reporter.generate_segmentation_report(results, "bank_segments")
    """

    def __init__(self, output_dir: str = "outputs"):
        """
        Initialize Reporter.

        Args:
            output_dir: Directory for saving reports
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Reporter initialized. Output: {self.output_dir}")

    def generate_segmentation_report(
        self,
        results: Dict[str, Any],
        report_name: str = "segmentation",
        formats: List[str] = ['csv', 'json']
    ) -> Dict[str, Path]:
        """
        Write the customer table, cluster summary, elbow curve and summary.

        Args:
            results: Pipeline results containing:
                - customers: augmented per-customer table
                - cluster_summary: per-cluster statistics
                - elbow_curve: (k, within_ss) pairs
                - centroids: centroids in original units
                - metrics, suggested_k, reference_date, config
            report_name: Prefix for output files
            formats: Output formats ('csv', 'json')

        Returns:
            Dictionary of output name -> file path
        """
        output_paths = {}

        if 'csv' in formats:
            customers = results.get('customers', pd.DataFrame())
            if not customers.empty:
                ordered = [c for c in CUSTOMER_COLUMNS if c in customers.columns]
                extra = [c for c in customers.columns if c not in ordered]
                path = self.output_dir / f"{report_name}_customers.csv"
                customers[ordered + extra].to_csv(path, index=False)
                output_paths['customers'] = path

            for name in ('cluster_summary', 'centroids'):
                table = results.get(name)
                if table is not None and not table.empty:
                    path = self.output_dir / f"{report_name}_{name}.csv"
                    table.to_csv(path, index=True)
                    output_paths[name] = path

            curve = results.get('elbow_curve')
            if curve is not None and not curve.empty:
                path = self.output_dir / f"{report_name}_elbow_curve.csv"
                curve.to_csv(path, index=False)
                output_paths['elbow_curve'] = path

        if 'json' in formats:
            path = self.output_dir / f"{report_name}_summary.json"
            reference_date = results.get('reference_date')

            json_data = {
                'generated_at': datetime.now().strftime("%Y%m%d_%H%M%S"),
                'reference_date': str(reference_date.date()) if reference_date is not None else None,
                'n_customers': len(results.get('customers', [])),
                'suggested_k': results.get('suggested_k'),
                'metrics': self._convert_to_serializable(results.get('metrics', {})),
                'segment_counts': self._convert_to_serializable(results.get('segment_counts', {})),
                'config': self._convert_to_serializable(results.get('config', {}))
            }

            with open(path, 'w') as f:
                json.dump(json_data, f, indent=2)
            output_paths['summary'] = path

        logger.info(f"Generated segmentation report: {report_name} ({len(output_paths)} files)")
        return output_paths

    def _convert_to_serializable(self, obj: Any) -> Any:
        """Convert numpy/pandas types to JSON serializable."""
        if isinstance(obj, dict):
            return {str(k): self._convert_to_serializable(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [self._convert_to_serializable(v) for v in obj]
        elif isinstance(obj, (bool, np.bool_)):
            return bool(obj)
        elif isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return None if np.isnan(obj) else float(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, pd.DataFrame):
            return obj.to_dict('records')
        elif isinstance(obj, pd.Series):
            return self._convert_to_serializable(obj.to_dict())
        elif isinstance(obj, pd.Timestamp):
            return obj.isoformat()
        elif obj is None or isinstance(obj, str):
            return obj
        elif pd.isna(obj):
            return None
        else:
            return obj
