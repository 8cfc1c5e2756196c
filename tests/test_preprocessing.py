import numpy as np
import pandas as pd
import pytest

from bank_segmentation.common import Preprocessor
from bank_segmentation.exceptions import ZeroVarianceError

FEATURES = ['recency', 'frequency', 'monetary', 'gender_flag', 'age']


@pytest.fixture
def customers():
    rng = np.random.default_rng(0)
    n = 200
    return pd.DataFrame({
        'customer_id': [f'C{i}' for i in range(n)],
        'recency': rng.integers(0, 300, size=n),
        'frequency': rng.integers(1, 12, size=n),
        'monetary': rng.gamma(2.0, 500.0, size=n),
        'gender_flag': rng.integers(0, 2, size=n).astype(float),
        'age': rng.integers(18, 80, size=n).astype(float),
    })


class TestScaleFeatures:

    def test_zero_mean_unit_variance(self, customers):
        scaled = Preprocessor().scale_features(customers, FEATURES)

        np.testing.assert_allclose(scaled.mean().values, 0.0, atol=1e-9)
        np.testing.assert_allclose(scaled.std(ddof=0).values, 1.0, atol=1e-9)

    def test_keeps_index_and_columns(self, customers):
        subset = customers.iloc[10:50]
        scaled = Preprocessor().scale_features(subset, FEATURES)

        assert list(scaled.columns) == FEATURES
        assert scaled.index.equals(subset.index)

    def test_input_unchanged(self, customers):
        before = customers.copy()
        Preprocessor().scale_features(customers, FEATURES)

        pd.testing.assert_frame_equal(customers, before)

    def test_zero_variance_column(self, customers):
        customers['gender_flag'] = 1.0

        with pytest.raises(ZeroVarianceError) as exc:
            Preprocessor().scale_features(customers, FEATURES)

        assert exc.value.columns == ['gender_flag']
        assert 'scaling' in str(exc.value)

    def test_missing_values_rejected(self, customers):
        customers.loc[3, 'age'] = np.nan

        with pytest.raises(ValueError, match='age'):
            Preprocessor().scale_features(customers, FEATURES)

    def test_inverse_scale(self, customers):
        preprocessor = Preprocessor()
        scaled = preprocessor.scale_features(customers, FEATURES)

        restored = preprocessor.inverse_scale(scaled.values[:5], FEATURES)

        np.testing.assert_allclose(
            restored.values, customers[FEATURES].values[:5].astype(float)
        )

    def test_inverse_scale_requires_fit(self):
        with pytest.raises(ValueError):
            Preprocessor().inverse_scale(np.zeros((1, 2)))


class TestMissingValues:

    def test_drop_policy(self, customers):
        customers.loc[[1, 2], 'age'] = np.nan
        customers.loc[5, 'gender_flag'] = np.nan

        complete = Preprocessor().handle_missing(customers, FEATURES, policy='drop')

        assert len(complete) == len(customers) - 3
        assert complete[FEATURES].notna().all().all()

    def test_median_policy(self, customers):
        customers.loc[[1, 2], 'age'] = np.nan
        median = customers['age'].median()

        filled = Preprocessor().handle_missing(customers, FEATURES, policy='median')

        assert len(filled) == len(customers)
        assert filled.loc[1, 'age'] == pytest.approx(median)

    def test_unknown_policy(self, customers):
        with pytest.raises(ValueError):
            Preprocessor().handle_missing(customers, FEATURES, policy='zero')


class TestOutliers:

    def test_clips_extreme_values(self, customers):
        customers.loc[0, 'monetary'] = 1e9

        clipped = Preprocessor().handle_outliers(customers, ['monetary'], threshold=3.0)

        assert len(clipped) == len(customers)
        assert clipped.loc[0, 'monetary'] == pytest.approx(customers['monetary'].iloc[1:].max())

    def test_constant_column_untouched(self, customers):
        customers['gender_flag'] = 1.0
        clipped = Preprocessor().handle_outliers(customers, ['gender_flag'])

        assert (clipped['gender_flag'] == 1.0).all()


class TestDeriveAge:

    def test_age_at_transaction(self):
        df = pd.DataFrame({
            'dob': pd.to_datetime(['1990-06-15', '1990-06-15', '2000-01-01', '1800-01-01']),
            'date': pd.to_datetime(['2016-06-14', '2016-06-15', '2016-08-01', '2016-08-01']),
        })

        out = Preprocessor().derive_age(df, 'dob', 'date')

        assert out['age'].iloc[0] == 25
        assert out['age'].iloc[1] == 26
        assert out['age'].iloc[2] == 16
        # Placeholder birth dates give implausible ages
        assert np.isnan(out['age'].iloc[3])
