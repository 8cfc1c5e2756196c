"""
Data Loading and Validation Module
===================================

Loads raw banking transaction files and maps them onto the canonical
transaction column contract used by the rest of the suite.

Usage:
    from bank_segmentation.common import DataLoader

    loader = DataLoader(config)
    transactions = loader.load_transactions("data/bank_transactions.csv")

    # Validate data
    is_valid, report = loader.validate_data(transactions)
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pandas as pd
from loguru import logger

from .config import DEFAULT_CONFIG, merge_config
from .preprocessing import Preprocessor


TRANSACTION_COLUMNS = [
    'customer_id',
    'transaction_date',
    'transaction_amount',
    'account_balance',
    'gender',
    'age',
]
NUMERIC_COLUMNS = ['transaction_amount', 'account_balance', 'age']


class DataLoader:
    """
    Transaction loader with column mapping and validation.

    Attributes:
        config (dict): The ``data`` section of the suite configuration
        supported_formats (list): List of supported file formats

    Example:
        >>> loader = DataLoader()
        >>> df = loader.load_transactions("bank_transactions.csv")
        >>> print(f"Loaded {len(df)} records")
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize DataLoader.

        Args:
            config: Full suite configuration (defaults if None)
        """
        self.config = merge_config(DEFAULT_CONFIG, config or {})['data']
        self.supported_formats = ['.csv', '.parquet']
        logger.info("DataLoader initialized")

    def load_csv(
        self,
        filepath: Union[str, Path],
        dtype: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> pd.DataFrame:
        """
        Load a CSV file.

        Args:
            filepath: Path to CSV file
            dtype: Dictionary of column dtypes
            **kwargs: Additional arguments passed to pd.read_csv

        Returns:
            DataFrame with loaded data

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is unsupported
        """
        filepath = self._check_path(filepath)

        logger.info(f"Loading data from {filepath}")
        if filepath.suffix.lower() == '.parquet':
            df = pd.read_parquet(filepath, **kwargs)
        else:
            df = pd.read_csv(filepath, dtype=dtype, low_memory=False, **kwargs)

        logger.info(f"Loaded {len(df)} records with {len(df.columns)} columns")
        return df

    def load_transactions(self, filepath: Union[str, Path]) -> pd.DataFrame:
        """
        Load a transaction file and return it in canonical form.

        Args:
            filepath: Path to CSV or Parquet file

        Returns:
            DataFrame with the canonical transaction columns
        """
        columns = self.config.get('columns', {})
        id_column = columns.get('customer_id', 'customer_id')
        df = self.load_csv(filepath, dtype={id_column: str})
        return self.prepare_transactions(df)

    def prepare_transactions(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Rename source columns and coerce types.

        Unparseable dates and numbers become missing values rather than
        failing the load; the aggregator decides what to do with them.

        Args:
            df: Raw transaction DataFrame in source layout

        Returns:
            DataFrame with canonical column names and types

        Raises:
            ValueError: If required source columns are absent
        """
        columns = self.config.get('columns', {})
        dob_column = self.config.get('dob_column')

        rename = {source: canonical for canonical, source in columns.items()}
        missing = [
            source for canonical, source in columns.items()
            if source not in df.columns
            and not (canonical == 'age' and dob_column)
        ]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        keep = [source for source in columns.values() if source in df.columns]
        if dob_column:
            if dob_column not in df.columns:
                raise ValueError(f"Missing date of birth column: {dob_column}")
            keep.append(dob_column)

        out = df[keep].rename(columns=rename).copy()
        out['transaction_date'] = self._parse_dates(out['transaction_date'])

        for col in NUMERIC_COLUMNS:
            if col in out.columns:
                out[col] = pd.to_numeric(out[col], errors='coerce')

        if dob_column:
            out[dob_column] = self._parse_dates(out[dob_column])
            out = Preprocessor().derive_age(out, dob_column, 'transaction_date')
            out = out.drop(columns=[dob_column])

        out['gender'] = out['gender'].map(lambda v: v.strip() if isinstance(v, str) else v)
        out = out[TRANSACTION_COLUMNS]

        n_bad_dates = out['transaction_date'].isna().sum()
        if n_bad_dates:
            logger.warning(f"{n_bad_dates} transactions have missing or unparseable dates")

        logger.info(f"Prepared {len(out)} transactions for {out['customer_id'].nunique()} customers")
        return out

    def validate_data(
        self,
        df: pd.DataFrame,
        required_columns: Optional[List[str]] = None
    ) -> Tuple[bool, Dict[str, Any]]:
        """
        Validate a canonical transaction frame and generate a quality report.

        Args:
            df: DataFrame to validate
            required_columns: Required column names (canonical set if None)

        Returns:
            Tuple of (is_valid, validation_report)

        Example:
            >>> is_valid, report = loader.validate_data(df)
            >>> if not is_valid:
            ...     print(report['errors'])
        """
        required_columns = required_columns or TRANSACTION_COLUMNS
        report = {
            'is_valid': True,
            'errors': [],
            'warnings': [],
            'statistics': {}
        }

        if df.empty:
            report['errors'].append("No transaction rows")
            report['is_valid'] = False

        missing = set(required_columns) - set(df.columns)
        if missing:
            report['errors'].append(f"Missing required columns: {sorted(missing)}")
            report['is_valid'] = False

        for col in NUMERIC_COLUMNS:
            if col in df.columns and not pd.api.types.is_numeric_dtype(df[col]):
                report['warnings'].append(f"Column '{col}' should be numeric")

        if 'transaction_date' in df.columns and not pd.api.types.is_datetime64_any_dtype(df['transaction_date']):
            report['warnings'].append("Column 'transaction_date' should be datetime")

        if 'transaction_amount' in df.columns and pd.api.types.is_numeric_dtype(df['transaction_amount']):
            n_negative = int((df['transaction_amount'] < 0).sum())
            if n_negative:
                report['warnings'].append(f"{n_negative} negative transaction amounts")

        if 'gender' in df.columns:
            n_categories = df['gender'].dropna().nunique()
            if n_categories > 2:
                report['warnings'].append(
                    f"Gender has {n_categories} categories; binary encoding will lose information"
                )

        if len(df):
            for col in df.columns:
                missing_ratio = df[col].isna().sum() / len(df)
                if missing_ratio > 0:
                    report['warnings'].append(
                        f"Missing values in '{col}': {missing_ratio:.2%}"
                    )

        report['statistics'] = {
            'n_rows': len(df),
            'n_customers': int(df['customer_id'].nunique()) if 'customer_id' in df.columns else 0,
            'missing_values': df.isna().sum().to_dict(),
            'dtypes': df.dtypes.astype(str).to_dict()
        }

        report['is_valid'] = not report['errors']
        return report['is_valid'], report

    def _parse_dates(self, series: pd.Series) -> pd.Series:
        if pd.api.types.is_datetime64_any_dtype(series):
            return series
        return pd.to_datetime(
            series,
            format=self.config.get('date_format'),
            dayfirst=bool(self.config.get('dayfirst', False)),
            errors='coerce'
        )

    def _check_path(self, filepath: Union[str, Path]) -> Path:
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        if filepath.suffix.lower() not in self.supported_formats:
            raise ValueError(f"Unsupported format: {filepath.suffix}")

        return filepath
