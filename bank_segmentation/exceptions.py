"""
Segmentation Errors
===================

Error taxonomy for the segmentation pipeline. Every error is fatal for the
run in which it occurs and names the stage that raised it.
"""

from typing import Any, Dict, Iterable, List, Optional


def _preview(values: Iterable[Any], limit: int = 10) -> str:
    values = list(values)
    shown = ', '.join(str(v) for v in values[:limit])
    if len(values) > limit:
        shown += f', ... ({len(values) - limit} more)'
    return shown


class SegmentationError(ValueError):
    """Base class for pipeline failures."""

    stage = 'pipeline'

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.details = details or {}
        super().__init__(f"[{self.stage}] {message}")


class EmptyInputError(SegmentationError):
    """No usable transaction rows."""

    stage = 'aggregation'


class MissingDateError(SegmentationError):
    """One or more customers have no valid transaction date."""

    stage = 'aggregation'

    def __init__(self, customer_ids: List[Any]):
        self.customer_ids = list(customer_ids)
        super().__init__(
            f"{len(self.customer_ids)} customers have no valid transaction date: "
            f"{_preview(self.customer_ids)}",
            {'customer_ids': self.customer_ids}
        )


class InconsistentDemographicsError(SegmentationError):
    """A customer carries conflicting demographic values."""

    stage = 'aggregation'

    def __init__(self, column: str, customer_ids: List[Any]):
        self.column = column
        self.customer_ids = list(customer_ids)
        super().__init__(
            f"Column '{column}' varies within {len(self.customer_ids)} customers: "
            f"{_preview(self.customer_ids)}",
            {'column': column, 'customer_ids': self.customer_ids}
        )


class InsufficientPopulationError(SegmentationError):
    """Too few customers for quantile binning."""

    stage = 'scoring'

    def __init__(self, n_customers: int, n_bins: int):
        self.n_customers = n_customers
        self.n_bins = n_bins
        super().__init__(
            f"Quantile binning into {n_bins} groups needs at least {n_bins} "
            f"customers, got {n_customers}",
            {'n_customers': n_customers, 'n_bins': n_bins}
        )


class ZeroVarianceError(SegmentationError):
    """A feature column is constant and cannot be standardized."""

    stage = 'scaling'

    def __init__(self, columns: List[str]):
        self.columns = list(columns)
        super().__init__(
            f"Zero variance in columns: {_preview(self.columns)}",
            {'columns': self.columns}
        )


class EmptyClusterError(SegmentationError):
    """A cluster ended the fit without members."""

    stage = 'clustering'

    def __init__(self, clusters: List[int]):
        self.clusters = list(clusters)
        super().__init__(
            f"Clusters without members after refinement: {_preview(self.clusters)}",
            {'clusters': self.clusters}
        )
