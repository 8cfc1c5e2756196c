"""
Data Preprocessing Module
=========================

Preprocessing for customer segmentation: age derivation, missing value
handling, outlier treatment and feature standardization.

Usage:
    from bank_segmentation.common import Preprocessor

    preprocessor = Preprocessor()
    customers = preprocessor.handle_missing(customers, ['age', 'gender_flag'])
    scaled = preprocessor.scale_features(customers, ['recency', 'frequency', 'monetary'])
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Dict, Any
from sklearn.preprocessing import StandardScaler
from sklearn.impute import SimpleImputer
from scipy import stats
from loguru import logger

from ..exceptions import ZeroVarianceError


class Preprocessor:
    """
    Preprocessor for per-customer feature tables.

    Provides methods for:
    - Age derivation from date of birth
    - Missing value handling (drop or impute)
    - Outlier detection and clipping
    - Feature standardization

    Example:
        >>> preprocessor = Preprocessor()
        >>> scaled = preprocessor.scale_features(customers, ['recency', 'monetary'])
    """

    def __init__(self):
        self.scalers: Dict[str, Any] = {}
        self.imputers: Dict[str, Any] = {}
        logger.debug("Preprocessor initialized")

    def derive_age(
        self,
        df: pd.DataFrame,
        dob_column: str,
        date_column: str,
        age_column: str = 'age',
        max_age: int = 120
    ) -> pd.DataFrame:
        """
        Derive age in whole years at the time of each transaction.

        Ages outside [0, max_age] (placeholder birth dates, swapped
        centuries) are set to missing.

        Args:
            df: Transaction DataFrame
            dob_column: Date of birth column (datetime)
            date_column: Transaction date column (datetime)
            age_column: Output column name
            max_age: Largest plausible age

        Returns:
            DataFrame with the age column added
        """
        df = df.copy()
        dob = df[dob_column]
        when = df[date_column]

        years = when.dt.year - dob.dt.year
        before_birthday = (
            (when.dt.month < dob.dt.month)
            | ((when.dt.month == dob.dt.month) & (when.dt.day < dob.dt.day))
        )
        age = (years - before_birthday.astype(float)).astype(float)
        age = age.where((age >= 0) & (age <= max_age))

        n_invalid = int(age.isna().sum() - (dob.isna() | when.isna()).sum())
        if n_invalid > 0:
            logger.warning(f"Discarded {n_invalid} implausible ages derived from '{dob_column}'")

        df[age_column] = age
        return df

    def handle_missing(
        self,
        df: pd.DataFrame,
        columns: List[str],
        policy: str = 'drop',
        strategy: str = 'median'
    ) -> pd.DataFrame:
        """
        Resolve missing values in the given columns.

        Args:
            df: Input DataFrame
            columns: Columns that must be complete afterwards
            policy: 'drop' to exclude incomplete rows, 'impute' or 'median'
                to fill them
            strategy: SimpleImputer strategy when imputing

        Returns:
            DataFrame without missing values in ``columns``
        """
        if policy == 'drop':
            mask = df[columns].notna().all(axis=1)
            n_dropped = int((~mask).sum())
            if n_dropped > 0:
                logger.warning(f"Excluded {n_dropped} rows with missing values in {columns}")
            return df[mask].copy()

        if policy in ('impute', 'median', 'mean', 'most_frequent'):
            strategy = policy if policy != 'impute' else strategy
            return self.impute_missing(df, columns, strategy=strategy)

        raise ValueError(f"Unknown missing value policy: {policy}")

    def impute_missing(
        self,
        df: pd.DataFrame,
        columns: List[str],
        strategy: str = 'median'
    ) -> pd.DataFrame:
        """
        Impute missing numeric values.

        Args:
            df: Input DataFrame
            columns: Numeric columns to impute
            strategy: Strategy ('mean', 'median', 'most_frequent')

        Returns:
            DataFrame with imputed values
        """
        df = df.copy()
        to_impute = [c for c in columns if df[c].isna().any()]
        if not to_impute:
            return df

        imputer = SimpleImputer(strategy=strategy)
        df[to_impute] = imputer.fit_transform(df[to_impute].astype(float))
        self.imputers[strategy] = imputer
        logger.info(f"Imputed {len(to_impute)} columns using {strategy}: {to_impute}")

        return df

    def handle_outliers(
        self,
        df: pd.DataFrame,
        columns: List[str],
        threshold: float = 3.0
    ) -> pd.DataFrame:
        """
        Clip values whose z-score exceeds the threshold.

        Values are clipped to the range of the non-outlying values so the
        row count is unchanged.

        Args:
            df: Input DataFrame
            columns: Columns to process
            threshold: Absolute z-score above which a value is an outlier

        Returns:
            DataFrame with clipped values

        Example:
            >>> df = preprocessor.handle_outliers(df, ['monetary'], threshold=3.0)
        """
        df = df.copy()
        outlier_counts = {}

        for col in columns:
            data = df[col].dropna()
            if data.nunique() <= 1:
                continue

            z_scores = np.abs(stats.zscore(data))
            outlier_mask = z_scores > threshold
            n_outliers = int(outlier_mask.sum())
            outlier_counts[col] = n_outliers

            if n_outliers > 0:
                lower = data[~outlier_mask].min()
                upper = data[~outlier_mask].max()
                df[col] = df[col].clip(lower=lower, upper=upper)

        total_outliers = sum(outlier_counts.values())
        logger.info(f"Clipped {total_outliers} outliers across {len(columns)} columns")

        return df

    def scale_features(
        self,
        df: pd.DataFrame,
        columns: List[str]
    ) -> pd.DataFrame:
        """
        Standardize columns to zero mean and unit variance.

        Statistics come from the frame being transformed (population
        variance). The fitted scaler is kept under ``scalers['standard']``.

        Args:
            df: Input DataFrame without missing values in ``columns``
            columns: Columns to scale

        Returns:
            DataFrame with only the scaled columns, same index as ``df``

        Raises:
            ValueError: If the columns contain missing values or no rows
            ZeroVarianceError: If any column is constant
        """
        if df.empty:
            raise ValueError("Cannot scale an empty feature table")

        features = df[columns].astype(float)

        incomplete = [c for c in columns if features[c].isna().any()]
        if incomplete:
            raise ValueError(f"Missing values in feature columns: {incomplete}")

        constant = [c for c in columns if features[c].nunique() <= 1]
        if constant:
            raise ZeroVarianceError(constant)

        scaler = StandardScaler()
        scaled = pd.DataFrame(
            scaler.fit_transform(features.values),
            columns=columns,
            index=df.index
        )
        self.scalers['standard'] = scaler

        logger.info(f"Scaled {len(columns)} columns using standard method")
        return scaled

    def inverse_scale(
        self,
        values: np.ndarray,
        columns: Optional[List[str]] = None
    ) -> pd.DataFrame:
        """
        Map standardized values (e.g. centroids) back to original units.

        Args:
            values: Array in standardized space
            columns: Column names for the result

        Returns:
            DataFrame in original units
        """
        if 'standard' not in self.scalers:
            raise ValueError("Scaler not fitted. Call scale_features() first.")

        original = self.scalers['standard'].inverse_transform(np.atleast_2d(values))
        return pd.DataFrame(original, columns=columns)
