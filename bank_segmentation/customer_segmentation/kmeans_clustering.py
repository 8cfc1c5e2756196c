"""
K-Means Clustering Module
=========================

Scalable K-Means for customer segmentation: an advisory elbow curve on a
bounded subsample, then a two-phase fit (many restarts on a large
subsample, one refinement pass on the full population).

Usage:
    from bank_segmentation.customer_segmentation import KMeansSegmenter

    segmenter = KMeansSegmenter(random_state=42)
    curve = segmenter.elbow_curve(X_scaled, k_max=10)
    segmenter.fit(X_scaled, n_clusters=segmenter.suggest_k())
    labels = segmenter.labels_
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Any, Union
from sklearn.cluster import KMeans
from loguru import logger
import warnings

from ..exceptions import EmptyClusterError

warnings.filterwarnings('ignore')

MAX_SEED = 2**31 - 1


class KMeansSegmenter:
    """
    Two-phase K-Means for large customer tables.

    Multiple random restarts avoid poor local minima but are too costly on
    the full population, so they run on a seeded subsample and only the
    winning centroids are refined on all rows.

    All randomness comes from a ``numpy.random.Generator``: either one
    passed to a method, or a fresh one seeded with ``random_state``.

    Example:
        >>> segmenter = KMeansSegmenter(n_clusters=4)
        >>> segmenter.fit(X_scaled)
        >>> metrics = segmenter.get_cluster_metrics()
        >>> print(f"Between/total SS: {metrics['between_total_ratio']:.3f}")
    """

    def __init__(
        self,
        n_clusters: Optional[int] = None,
        k_max: int = 10,
        elbow_sample_size: int = 10000,
        fit_sample_size: int = 500000,
        n_init: int = 25,
        elbow_n_init: int = 10,
        sample_max_iter: int = 100,
        refine_max_iter: int = 50,
        init: str = 'k-means++',
        random_state: Optional[int] = 42
    ):
        """
        Initialize K-Means Segmenter.

        Args:
            n_clusters: Number of clusters (may also be passed to fit())
            k_max: Largest k on the elbow curve
            elbow_sample_size: Rows drawn for the elbow curve
            fit_sample_size: Rows drawn for the multi-restart phase
            n_init: Restarts in the subsample phase
            elbow_n_init: Restarts per k on the elbow curve
            sample_max_iter: Iteration cap in the subsample phase
            refine_max_iter: Iteration cap in the full-data refinement
            init: Initialization method ('k-means++' or 'random')
            random_state: Seed for the default random generator
        """
        if init not in ('k-means++', 'random'):
            raise ValueError(f"Unknown init method: {init}")

        self.n_clusters = n_clusters
        self.k_max = k_max
        self.elbow_sample_size = elbow_sample_size
        self.fit_sample_size = fit_sample_size
        self.n_init = n_init
        self.elbow_n_init = elbow_n_init
        self.sample_max_iter = sample_max_iter
        self.refine_max_iter = refine_max_iter
        self.init = init
        self.random_state = random_state

        self.model = None
        self.seed_model = None
        self.feature_columns = None
        self.cluster_centers_ = None
        self.labels_ = None
        self.within_ss_ = None
        self.between_ss_ = None
        self.total_ss_ = None
        self.n_iter_ = None
        self.cap_reached_ = None

        # For cluster selection
        self.k_range = None
        self.inertias = []

        logger.info("KMeansSegmenter initialized")

    def _get_rng(self, rng: Optional[np.random.Generator]) -> np.random.Generator:
        if rng is not None:
            return rng
        return np.random.default_rng(self.random_state)

    @staticmethod
    def _draw_seed(rng: np.random.Generator) -> int:
        return int(rng.integers(0, MAX_SEED))

    def _as_array(self, X: Union[pd.DataFrame, np.ndarray]) -> np.ndarray:
        if isinstance(X, pd.DataFrame):
            self.feature_columns = X.columns.tolist()
            X = X.values

        X = np.asarray(X, dtype=float)
        if X.ndim != 2 or len(X) == 0:
            raise ValueError(f"Expected a non-empty 2D feature matrix, got shape {X.shape}")
        if np.isnan(X).any():
            raise ValueError("Feature matrix contains missing values")
        return X

    @staticmethod
    def draw_sample(n_rows: int, size: int, rng: np.random.Generator) -> np.ndarray:
        """
        Uniform sample of row indices without replacement.

        Returns all rows when ``size >= n_rows``; indices are sorted so the
        sample keeps the original row order.
        """
        if size >= n_rows:
            return np.arange(n_rows)
        return np.sort(rng.choice(n_rows, size=size, replace=False))

    def elbow_curve(
        self,
        X: Union[pd.DataFrame, np.ndarray],
        k_max: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ) -> pd.DataFrame:
        """
        Within-cluster sum of squares for k = 1..k_max on a subsample.

        The curve is advisory: an operator picks k from it and passes it
        to fit().

        Args:
            X: Standardized feature matrix
            k_max: Largest k (defaults to the constructor value)
            rng: Random generator (seeded from random_state if None)

        Returns:
            DataFrame with columns 'k' and 'within_ss'

        Example:
            >>> curve = segmenter.elbow_curve(X_scaled, k_max=8)
        """
        X = self._as_array(X)
        rng = self._get_rng(rng)
        if k_max is None:
            k_max = self.k_max
        if k_max < 1:
            raise ValueError(f"k_max must be positive, got {k_max}")

        sample = X[self.draw_sample(len(X), self.elbow_sample_size, rng)]
        k_max = min(k_max, len(sample))

        self.k_range = range(1, k_max + 1)
        self.inertias = []

        for k in self.k_range:
            kmeans = KMeans(
                n_clusters=k,
                init=self.init,
                n_init=self.elbow_n_init,
                max_iter=self.sample_max_iter,
                random_state=self._draw_seed(rng)
            )
            kmeans.fit(sample)
            self.inertias.append(float(kmeans.inertia_))
            logger.debug(f"Elbow k={k}: within SS={kmeans.inertia_:.2f}")

        logger.info(f"Computed elbow curve for k=1..{k_max} on {len(sample)} rows")
        return pd.DataFrame({'k': list(self.k_range), 'within_ss': self.inertias})

    def suggest_k(self, curve: Optional[pd.DataFrame] = None) -> int:
        """
        Suggest the elbow of the curve.

        Uses the point furthest from the chord joining the first and last
        points of the curve. Only a suggestion; the operator decides.
        """
        if curve is not None:
            k_range = curve['k'].tolist()
            inertias = curve['within_ss'].tolist()
        elif self.inertias:
            k_range = list(self.k_range)
            inertias = self.inertias
        else:
            raise ValueError("No elbow curve. Call elbow_curve() first.")

        if len(k_range) < 3:
            return int(k_range[-1])

        return self._find_elbow(k_range, inertias)

    def _find_elbow(self, k_range: List[int], inertias: List[float]) -> int:
        """Find elbow point using the knee/elbow method."""
        all_coords = np.vstack([k_range, inertias]).T.astype(float)

        # Both axes on [0, 1]
        spans = all_coords.max(axis=0) - all_coords.min(axis=0)
        spans[spans == 0] = 1.0
        all_coords = (all_coords - all_coords.min(axis=0)) / spans

        first_point = all_coords[0]
        last_point = all_coords[-1]
        line_vec = last_point - first_point
        line_vec_norm = line_vec / np.sqrt(np.sum(line_vec**2))

        vec_from_first = all_coords - first_point
        scalar_proj = np.dot(vec_from_first, line_vec_norm)
        vec_from_line = vec_from_first - np.outer(scalar_proj, line_vec_norm)
        distances = np.sqrt(np.sum(vec_from_line**2, axis=1))

        elbow_idx = int(np.argmax(distances))
        return int(k_range[elbow_idx])

    def fit(
        self,
        X: Union[pd.DataFrame, np.ndarray],
        n_clusters: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ) -> 'KMeansSegmenter':
        """
        Fit K-Means at a fixed k with subsample seeding and full refinement.

        1. Draw ``fit_sample_size`` rows.
        2. Run ``n_init`` restarts on the sample, keep the lowest inertia.
        3. Refine on all rows from those centroids, single start.

        Reaching an iteration cap is not an error; the current assignment
        is returned.

        Args:
            X: Standardized feature matrix
            n_clusters: Number of clusters (defaults to the constructor value)
            rng: Random generator (seeded from random_state if None)

        Returns:
            Self for method chaining

        Raises:
            ValueError: If k is missing or larger than the sample
            EmptyClusterError: If a cluster has no members after refinement
        """
        X = self._as_array(X)
        rng = self._get_rng(rng)

        if n_clusters is None:
            n_clusters = self.n_clusters
        if n_clusters is None:
            raise ValueError("n_clusters not set. Pick k from elbow_curve() first.")
        if n_clusters < 1:
            raise ValueError(f"n_clusters must be positive, got {n_clusters}")
        self.n_clusters = int(n_clusters)

        sample_idx = self.draw_sample(len(X), self.fit_sample_size, rng)
        sample = X[sample_idx]
        if self.n_clusters > len(sample):
            raise ValueError(
                f"n_clusters={self.n_clusters} exceeds the {len(sample)} sampled rows"
            )

        # Phase 1: many restarts on the subsample
        self.seed_model = KMeans(
            n_clusters=self.n_clusters,
            init=self.init,
            n_init=self.n_init,
            max_iter=self.sample_max_iter,
            random_state=self._draw_seed(rng)
        )
        self.seed_model.fit(sample)
        logger.info(
            f"Seeded {self.n_clusters} centroids from {len(sample)} rows "
            f"({self.n_init} restarts, inertia {self.seed_model.inertia_:.2f})"
        )

        # Phase 2: single refinement on the full data
        self.model = KMeans(
            n_clusters=self.n_clusters,
            init=self.seed_model.cluster_centers_,
            n_init=1,
            max_iter=self.refine_max_iter,
            random_state=self._draw_seed(rng)
        )
        self.model.fit(X)

        # A run that converges on the last allowed iteration also counts as
        # having reached the cap; scikit-learn does not tell the two apart.
        self.n_iter_ = int(self.model.n_iter_)
        self.cap_reached_ = self.n_iter_ >= self.refine_max_iter
        if self.cap_reached_:
            logger.debug(f"Refinement reached the iteration cap ({self.refine_max_iter})")

        labels = self.model.labels_
        sizes = np.bincount(labels, minlength=self.n_clusters)
        empty = [int(c) + 1 for c in np.flatnonzero(sizes == 0)]
        if empty:
            raise EmptyClusterError(empty)

        self._compute_sums_of_squares(X, labels)
        self.labels_ = labels + 1

        logger.info(f"Fitted K-Means with {self.n_clusters} clusters on {len(X)} rows")
        logger.info(f"Between/total SS: {self.between_ss_ / self.total_ss_ if self.total_ss_ else 0:.3f}")

        return self

    def _compute_sums_of_squares(self, X: np.ndarray, labels: np.ndarray):
        """Centroids as member means, and the SS decomposition around them."""
        grand_mean = X.mean(axis=0)
        centers = np.zeros((self.n_clusters, X.shape[1]))
        within = 0.0
        between = 0.0

        for c in range(self.n_clusters):
            members = X[labels == c]
            centers[c] = members.mean(axis=0)
            within += float(((members - centers[c]) ** 2).sum())
            between += len(members) * float(((centers[c] - grand_mean) ** 2).sum())

        self.cluster_centers_ = centers
        self.within_ss_ = within
        self.between_ss_ = between
        self.total_ss_ = float(((X - grand_mean) ** 2).sum())

    def fit_predict(
        self,
        X: Union[pd.DataFrame, np.ndarray],
        n_clusters: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ) -> np.ndarray:
        """Fit and return cluster labels (1..k)."""
        self.fit(X, n_clusters=n_clusters, rng=rng)
        return self.labels_

    def get_cluster_metrics(self) -> Dict[str, Any]:
        """
        Clustering quality metrics.

        ``between_total_ratio`` is reported for inspection, not checked
        against any threshold.

        Example:
            >>> metrics = segmenter.get_cluster_metrics()
            >>> print(f"Ratio: {metrics['between_total_ratio']:.3f}")
        """
        if self.labels_ is None:
            raise ValueError("Model not fitted. Call fit() first.")

        ratio = self.between_ss_ / self.total_ss_ if self.total_ss_ > 0 else 0.0
        sizes = np.bincount(self.labels_ - 1, minlength=self.n_clusters)

        return {
            'n_clusters': self.n_clusters,
            'within_ss': self.within_ss_,
            'between_ss': self.between_ss_,
            'total_ss': self.total_ss_,
            'between_total_ratio': float(min(max(ratio, 0.0), 1.0)),
            'n_iter': self.n_iter_,
            'cap_reached': self.cap_reached_,
            'cluster_sizes': {c + 1: int(n) for c, n in enumerate(sizes)}
        }

    def get_cluster_centers(self) -> pd.DataFrame:
        """Cluster centroids in standardized feature space, indexed 1..k."""
        if self.cluster_centers_ is None:
            raise ValueError("Model not fitted. Call fit() first.")

        return pd.DataFrame(
            self.cluster_centers_,
            columns=self.feature_columns,
            index=pd.Index(range(1, self.n_clusters + 1), name='cluster')
        )

    def get_selection_plot_data(self) -> Dict[str, Any]:
        """
        Get data for plotting K selection (elbow curve).

        Returns:
            Dictionary with plot data
        """
        if not self.inertias:
            raise ValueError("No selection data. Call elbow_curve() first.")

        return {
            'k_range': list(self.k_range),
            'inertias': self.inertias,
            'suggested_k': self.suggest_k(),
            'selected_k': self.n_clusters
        }
