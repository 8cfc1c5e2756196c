"""
Sample Data Generator
=====================

Synthetic datasets for exercising the segmentation suite.

Usage:
    from bank_segmentation.common.sample_data import generate_transactions

    raw = generate_transactions(n_customers=1000, n_transactions=10000)
    raw.to_csv("data/sample_bank_transactions.csv", index=False)
"""

from typing import Optional, Tuple

import numpy as np
import pandas as pd

DATE_FORMAT = '%d/%m/%y'


def generate_transactions(
    n_customers: int = 1000,
    n_transactions: int = 10000,
    start_date: str = '2016-01-01',
    end_date: str = '2016-10-31',
    seed: int = 42,
    rng: Optional[np.random.Generator] = None
) -> pd.DataFrame:
    """
    Generate synthetic bank transactions in the source file layout.

    Customers differ in activity level (which drives both how often and how
    recently they transact), typical amount and account balance.

    Args:
        n_customers: Number of unique customers
        n_transactions: Total number of transactions
        start_date: Earliest transaction date
        end_date: Latest transaction date
        seed: Seed used when ``rng`` is not given
        rng: Random generator

    Returns:
        DataFrame with CustomerID, CustGender, age, CustAccountBalance,
        TransactionDate (dd/mm/yy strings) and TransactionAmount (INR)
    """
    rng = rng if rng is not None else np.random.default_rng(seed)
    start = pd.Timestamp(start_date)
    end = pd.Timestamp(end_date)
    date_range = (end - start).days

    ids = np.array([f'C{1000000 + i}' for i in range(n_customers)])
    activity = rng.choice([30, 90, 180], size=n_customers, p=[0.2, 0.5, 0.3])
    typical_amount = rng.lognormal(6.5, 1.0, size=n_customers)
    balance = rng.lognormal(10, 1.2, size=n_customers)
    gender = rng.choice(['M', 'F'], size=n_customers, p=[0.7, 0.3])
    age = rng.integers(18, 70, size=n_customers)

    # Busier customers transact more often
    weights = 1.0 / activity
    customer_idx = rng.choice(n_customers, size=n_transactions, p=weights / weights.sum())
    # Every customer appears at least once
    customer_idx[:n_customers] = np.arange(min(n_customers, n_transactions))

    days_ago = np.minimum(rng.exponential(activity[customer_idx]).astype(int), date_range)
    dates = end - pd.to_timedelta(days_ago, unit='D')
    amounts = np.maximum(
        1.0, rng.normal(typical_amount[customer_idx], typical_amount[customer_idx] * 0.3)
    )
    balances = balance[customer_idx] * rng.uniform(0.9, 1.1, size=n_transactions)

    df = pd.DataFrame({
        'TransactionID': [f'T{i + 1}' for i in range(n_transactions)],
        'CustomerID': ids[customer_idx],
        'CustGender': gender[customer_idx],
        'age': age[customer_idx],
        'CustAccountBalance': balances.round(2),
        'TransactionDate': dates.strftime(DATE_FORMAT),
        'TransactionAmount (INR)': amounts.round(2),
    })

    return df.sample(frac=1.0, random_state=int(rng.integers(0, 2**31 - 1))).reset_index(drop=True)


def generate_clustered_customers(
    n_customers: int = 10000,
    n_clusters: int = 4,
    n_features: int = 5,
    separation: float = 10.0,
    spread: float = 1.0,
    seed: int = 42,
    rng: Optional[np.random.Generator] = None
) -> Tuple[pd.DataFrame, np.ndarray]:
    """
    Generate well-separated Gaussian blobs in feature space.

    Centers sit on distinct coordinate axes (scaled by ``separation``) when
    ``n_clusters <= n_features``, otherwise they are drawn uniformly.

    Returns:
        Tuple of (feature DataFrame, true cluster ids 1..n_clusters)
    """
    rng = rng if rng is not None else np.random.default_rng(seed)

    if n_clusters <= n_features:
        centers = np.eye(n_clusters, n_features) * separation
    else:
        centers = rng.uniform(-separation, separation, size=(n_clusters, n_features))

    labels = rng.integers(0, n_clusters, size=n_customers)
    X = centers[labels] + rng.normal(0, spread, size=(n_customers, n_features))

    columns = [f'feature_{i + 1}' for i in range(n_features)]
    return pd.DataFrame(X, columns=columns), labels + 1
