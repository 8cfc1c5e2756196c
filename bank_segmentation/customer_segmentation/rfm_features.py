"""
RFM Feature Engineering Module
==============================

Aggregates raw banking transactions into one row per customer with
Recency, Frequency and Monetary metrics, then scores each metric into
population-wide quintiles and assigns a value segment.

Usage:
    from bank_segmentation.customer_segmentation import RFMFeatureEngineer

    engineer = RFMFeatureEngineer()
    rfm_df = engineer.calculate_rfm(transactions_df)
    scored = engineer.calculate_rfm_scores(rfm_df)
"""

import pandas as pd
import numpy as np
from typing import Optional, List, Tuple
from datetime import datetime
from loguru import logger
import warnings

from ..exceptions import (
    EmptyInputError,
    InconsistentDemographicsError,
    InsufficientPopulationError,
    MissingDateError,
)

warnings.filterwarnings('ignore')


# Evaluated top-down, first match wins.
SEGMENT_THRESHOLDS: List[Tuple[float, str]] = [
    (4.5, 'Champions'),
    (4.0, 'Loyal Customers'),
    (3.0, 'Potential Loyalists'),
    (2.0, 'Needs Attention'),
    (1.0, 'Hibernating'),
]
FALLBACK_SEGMENT = 'At Risk'

RFM_METRICS = ['recency', 'frequency', 'monetary']


def assign_segment(score: float) -> str:
    """Map a composite RFM score onto its segment label."""
    for threshold, segment in SEGMENT_THRESHOLDS:
        if score >= threshold:
            return segment
    return FALLBACK_SEGMENT


class RFMFeatureEngineer:
    """
    RFM feature engineering for bank customers.

    Aggregation and scoring both need population-wide context (the
    dataset-wide reference date, the population ranks), so each is split
    into a "compute statistics" step and an "apply" step.

    Example:
        >>> engineer = RFMFeatureEngineer()
        >>> rfm = engineer.calculate_rfm(transactions)
        >>> scored = engineer.calculate_rfm_scores(rfm)
    """

    customer_id = 'customer_id'
    date_column = 'transaction_date'
    amount_column = 'transaction_amount'
    balance_column = 'account_balance'

    def __init__(
        self,
        n_bins: int = 5,
        positive_gender: str = 'M',
        negative_gender: str = 'F',
        missing_date_policy: str = 'exclude',
        demographic_rule: str = 'mode'
    ):
        """
        Initialize RFM Feature Engineer.

        Args:
            n_bins: Number of quantile bins per metric
            positive_gender: Gender value encoded as 1
            negative_gender: Gender value encoded as 0
            missing_date_policy: 'exclude' or 'raise' for customers
                without any valid transaction date
            demographic_rule: 'mode' (most frequent value) or 'strict'
                (fail when a customer's demographics vary)
        """
        if missing_date_policy not in ('exclude', 'raise'):
            raise ValueError(f"Unknown missing date policy: {missing_date_policy}")
        if demographic_rule not in ('mode', 'strict'):
            raise ValueError(f"Unknown demographic rule: {demographic_rule}")

        self.n_bins = n_bins
        self.positive_gender = positive_gender
        self.negative_gender = negative_gender
        self.missing_date_policy = missing_date_policy
        self.demographic_rule = demographic_rule

        self.reference_date_: Optional[pd.Timestamp] = None
        self.excluded_customers_: List = []

        logger.info("RFMFeatureEngineer initialized")

    def compute_reference_date(self, df: pd.DataFrame) -> pd.Timestamp:
        """
        Reference date for recency: the latest transaction date in the input.

        Raises:
            EmptyInputError: If there are no rows or no valid dates
        """
        if df.empty:
            raise EmptyInputError("Transaction table has no rows")

        dates = pd.to_datetime(df[self.date_column], errors='coerce')
        if dates.isna().all():
            raise EmptyInputError(
                f"All {len(df)} transactions lack a valid '{self.date_column}'"
            )

        return dates.max().normalize()

    def calculate_rfm(
        self,
        df: pd.DataFrame,
        reference_date: Optional[datetime] = None
    ) -> pd.DataFrame:
        """
        Calculate RFM metrics for each customer.

        Args:
            df: Canonical transaction DataFrame
            reference_date: Reference date for recency (default: max date)

        Returns:
            DataFrame with one row per customer

        Raises:
            EmptyInputError: If there is nothing to aggregate
            MissingDateError: If a customer has no valid date and the
                policy is 'raise'

        Example:
            >>> rfm = engineer.calculate_rfm(transactions)
        """
        if df.empty:
            raise EmptyInputError("Transaction table has no rows")

        df = df.copy()
        df[self.date_column] = pd.to_datetime(df[self.date_column], errors='coerce')

        n_no_id = int(df[self.customer_id].isna().sum())
        if n_no_id > 0:
            logger.warning(f"Ignoring {n_no_id} transactions without a customer id")
            df = df[df[self.customer_id].notna()]

        if reference_date is None:
            reference_date = self.compute_reference_date(df)
        reference_date = pd.Timestamp(reference_date).normalize()
        self.reference_date_ = reference_date

        df = self._handle_undated_customers(df)

        # Stable sort so that "last" is the latest dated row, ties keep input order
        df = df.sort_values(self.date_column, kind='mergesort', na_position='first')

        grouped = df.groupby(self.customer_id, sort=True)
        rfm = grouped.agg(
            last_date=(self.date_column, 'max'),
            frequency=(self.date_column, 'size'),
            monetary=(self.amount_column, 'sum'),
            avg_transaction_amount=(self.amount_column, 'mean'),
            last_transaction_amount=(self.amount_column, 'last'),
            avg_account_balance=(self.balance_column, 'mean'),
            last_account_balance=(self.balance_column, 'last'),
        )

        rfm['recency'] = (reference_date - rfm['last_date'].dt.normalize()).dt.days.astype(int)
        rfm['frequency'] = rfm['frequency'].astype(int)

        negative = rfm.index[rfm['recency'] < 0].tolist()
        if negative:
            raise ValueError(
                f"Reference date {reference_date.date()} precedes the last "
                f"transaction of {len(negative)} customers"
            )

        gender = self._reduce_demographic(df, 'gender')
        rfm['gender_flag'] = self._encode_gender(gender.reindex(rfm.index))
        rfm['age'] = self._reduce_demographic(df, 'age').reindex(rfm.index).astype(float)

        rfm = rfm.reset_index()[[
            self.customer_id, 'recency', 'frequency', 'monetary',
            'avg_transaction_amount', 'last_transaction_amount',
            'avg_account_balance', 'last_account_balance',
            'gender_flag', 'age'
        ]]

        logger.info(
            f"Calculated RFM for {len(rfm)} customers "
            f"(reference date {reference_date.date()})"
        )
        return rfm

    def _handle_undated_customers(self, df: pd.DataFrame) -> pd.DataFrame:
        has_date = df[self.date_column].notna().groupby(df[self.customer_id]).any()
        undated = has_date.index[~has_date].tolist()
        self.excluded_customers_ = undated

        if not undated:
            return df

        if self.missing_date_policy == 'raise':
            raise MissingDateError(undated)

        logger.warning(
            f"Excluding {len(undated)} customers without a valid transaction date "
            f"(e.g. {undated[:5]})"
        )
        return df[~df[self.customer_id].isin(undated)]

    def _reduce_demographic(self, df: pd.DataFrame, column: str) -> pd.Series:
        """Reduce a per-transaction attribute to one value per customer."""
        values = df[[self.customer_id, column]].dropna(subset=[column])

        if self.demographic_rule == 'strict':
            n_distinct = values.groupby(self.customer_id)[column].nunique()
            conflicting = n_distinct.index[n_distinct > 1].tolist()
            if conflicting:
                raise InconsistentDemographicsError(column, conflicting)

        # Most frequent value; ties go to the smallest value
        counts = values.groupby([self.customer_id, column]).size().reset_index(name='n')
        counts = counts.sort_values(
            [self.customer_id, 'n', column],
            ascending=[True, False, True],
            kind='mergesort'
        )
        chosen = counts.drop_duplicates(subset=[self.customer_id], keep='first')

        return chosen.set_index(self.customer_id)[column]

    def _encode_gender(self, gender: pd.Series) -> pd.Series:
        flag = pd.Series(np.nan, index=gender.index, dtype=float)
        flag[gender == self.positive_gender] = 1.0
        flag[gender == self.negative_gender] = 0.0

        n_unencoded = int(flag.isna().sum())
        if n_unencoded > 0:
            logger.warning(
                f"{n_unencoded} customers have a gender outside "
                f"{{{self.positive_gender}, {self.negative_gender}}}; gender_flag left missing"
            )
        return flag

    def compute_score_ranks(self, rfm: pd.DataFrame) -> pd.DataFrame:
        """
        Population-wide ranks for each RFM metric.

        Ties are broken by row order. Recency is ranked descending so the
        most recent customers hold the highest ranks.

        Raises:
            InsufficientPopulationError: If there are fewer customers than bins
        """
        n_customers = rfm[self.customer_id].nunique() if self.customer_id in rfm else len(rfm)
        if n_customers < self.n_bins:
            raise InsufficientPopulationError(n_customers, self.n_bins)

        return pd.DataFrame({
            'recency': rfm['recency'].rank(method='first', ascending=False),
            'frequency': rfm['frequency'].rank(method='first'),
            'monetary': rfm['monetary'].rank(method='first'),
        }, index=rfm.index)

    def apply_scores(self, rfm: pd.DataFrame, ranks: pd.DataFrame) -> pd.DataFrame:
        """
        Turn population ranks into 1..n_bins scores and composite fields.

        Bin b holds ranks in ((b-1)*n/n_bins, b*n/n_bins], so bin sizes
        differ by at most one.
        """
        rfm = rfm.copy()
        n = len(ranks)

        for metric in RFM_METRICS:
            rfm[f'{metric}_score'] = np.ceil(ranks[metric] * self.n_bins / n).astype(int)

        rfm['rfm_score'] = (
            rfm[['recency_score', 'frequency_score', 'monetary_score']].mean(axis=1)
        ).round(2)

        rfm['rfm_level'] = (
            rfm['recency_score'].astype(str) +
            rfm['frequency_score'].astype(str) +
            rfm['monetary_score'].astype(str)
        )

        return rfm

    def calculate_rfm_scores(self, rfm: pd.DataFrame) -> pd.DataFrame:
        """
        Calculate RFM scores (1-5), composite score and segment.

        Args:
            rfm: DataFrame with RFM metrics

        Returns:
            DataFrame with scores and segment appended

        Example:
            >>> scored = engineer.calculate_rfm_scores(rfm)
        """
        ranks = self.compute_score_ranks(rfm)
        scored = self.apply_scores(rfm, ranks)
        scored = self.segment_customers(scored)

        logger.info("Calculated RFM scores")
        return scored

    def segment_customers(self, rfm: pd.DataFrame) -> pd.DataFrame:
        """
        Assign customers to value segments by composite score.

        Args:
            rfm: DataFrame with an ``rfm_score`` column

        Returns:
            DataFrame with segment assignments
        """
        rfm = rfm.copy()
        rfm['segment'] = rfm['rfm_score'].map(assign_segment)

        segment_counts = rfm['segment'].value_counts()
        logger.info(f"Segment distribution:\n{segment_counts}")

        return rfm

    def get_segment_profiles(self, rfm: pd.DataFrame) -> pd.DataFrame:
        """
        Summarize each RFM segment.

        Args:
            rfm: Scored DataFrame with segments

        Returns:
            DataFrame indexed by segment, highest-value segment first
        """
        if 'segment' not in rfm.columns:
            rfm = self.segment_customers(rfm)

        profile = rfm.groupby('segment')[RFM_METRICS + ['rfm_score']].mean()
        profile.columns = [f'{c}_mean' for c in profile.columns]
        profile['customer_count'] = rfm.groupby('segment').size()
        profile['customer_percentage'] = profile['customer_count'] / len(rfm) * 100

        return profile.sort_values('rfm_score_mean', ascending=False)
