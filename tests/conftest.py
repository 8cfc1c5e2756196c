import numpy as np
import pandas as pd
import pytest

from bank_segmentation.common.sample_data import generate_clustered_customers

REFERENCE_DATE = pd.Timestamp('2024-03-01')


def make_transactions(rows):
    """Canonical transaction frame from (id, date, amount, balance, gender, age) tuples."""
    df = pd.DataFrame(rows, columns=[
        'customer_id', 'transaction_date', 'transaction_amount',
        'account_balance', 'gender', 'age'
    ])
    df['transaction_date'] = pd.to_datetime(df['transaction_date'])
    return df


@pytest.fixture
def ladder_transactions():
    """
    Ten customers C01..C10. Customer i has i transactions of 100*i, the
    latest one (10 - i) days before the reference date.
    """
    rows = []
    for i in range(1, 11):
        for j in range(i):
            date = REFERENCE_DATE - pd.Timedelta(days=(10 - i) + j)
            rows.append((
                f'C{i:02d}', date, 100.0 * i, 1000.0 * i,
                'M' if i % 2 else 'F', 20 + i
            ))
    return make_transactions(rows)


@pytest.fixture
def three_customer_transactions():
    """A: one purchase 10 days ago. B: five purchases in the last 2 days."""
    rows = [('A', REFERENCE_DATE - pd.Timedelta(days=10), 100.0, 500.0, 'F', 30)]
    for days in [0, 0, 1, 1, 2]:
        rows.append(('B', REFERENCE_DATE - pd.Timedelta(days=days), 1000.0, 9000.0, 'M', 45))
    return make_transactions(rows)


@pytest.fixture
def blobs():
    """10,000 customers in 4 well-separated groups, already on a standard scale."""
    X, labels = generate_clustered_customers(
        n_customers=10000, n_clusters=4, n_features=4, separation=10.0, seed=0
    )
    X = (X - X.mean()) / X.std(ddof=0)
    return X, labels


@pytest.fixture
def rng():
    return np.random.default_rng(123)
