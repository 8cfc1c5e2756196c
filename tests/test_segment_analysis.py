import numpy as np
import pandas as pd
import pytest

from bank_segmentation.customer_segmentation import SegmentAnalyzer


@pytest.fixture
def clustered():
    return pd.DataFrame({
        'customer_id': ['a', 'b', 'c', 'd', 'e', 'f'],
        'recency': [1, 3, 10, 20, 30, 40],
        'frequency': [5, 7, 2, 1, 1, 1],
        'monetary': [500.0, 700.0, 20.0, 10.0, 10.0, 40.0],
        'avg_account_balance': [1e4, 3e4, 100.0, 200.0, 300.0, 400.0],
        'gender_flag': [1.0, 1.0, 0.0, 0.0, 1.0, 0.0],
        'age': [30.0, 40.0, 60.0, np.nan, 50.0, 70.0],
        'segment': ['Champions', 'Champions', 'Hibernating', 'At Risk', 'At Risk', 'At Risk'],
        'cluster': [1, 1, 2, 2, 2, 2],
    })


class TestProfileClusters:

    def test_counts_and_means(self, clustered):
        summary = SegmentAnalyzer().profile_clusters(clustered, 'cluster')

        assert list(summary.index) == [1, 2]
        assert summary.loc[1, 'count'] == 2
        assert summary.loc[2, 'count'] == 4
        assert summary.loc[1, 'recency_mean'] == pytest.approx(2.0)
        assert summary.loc[2, 'monetary_mean'] == pytest.approx(20.0)
        assert summary.loc[1, 'avg_account_balance_mean'] == pytest.approx(2e4)
        assert summary.loc[2, 'gender_flag_mean'] == pytest.approx(0.25)
        # Missing ages are skipped in the mean
        assert summary.loc[2, 'age_mean'] == pytest.approx(60.0)

    def test_percentages_sum_to_100(self, clustered):
        summary = SegmentAnalyzer().profile_clusters(clustered, 'cluster')
        assert summary['percentage'].sum() == pytest.approx(100.0)

    def test_absent_metrics_skipped(self, clustered):
        summary = SegmentAnalyzer().profile_clusters(clustered, 'cluster')
        assert 'last_account_balance_mean' not in summary.columns

    def test_missing_cluster_column(self, clustered):
        with pytest.raises(ValueError):
            SegmentAnalyzer().profile_clusters(clustered, 'group')


class TestLabels:

    def test_apply_to_customers(self, clustered):
        labeled = SegmentAnalyzer().apply_cluster_labels(
            clustered, {1: 'Active savers', 2: 'Dormant'}
        )

        assert labeled['cluster_label'].tolist() == ['Active savers'] * 2 + ['Dormant'] * 4

    def test_apply_to_summary(self, clustered):
        analyzer = SegmentAnalyzer()
        summary = analyzer.profile_clusters(clustered, 'cluster')

        labeled = analyzer.apply_cluster_labels(summary, {1: 'Active savers', 2: 'Dormant'})

        assert labeled.loc[2, 'cluster_label'] == 'Dormant'

    def test_every_cluster_needs_a_label(self, clustered):
        with pytest.raises(ValueError, match='2'):
            SegmentAnalyzer().apply_cluster_labels(clustered, {1: 'Active savers'})


class TestCrossTabulation:

    def test_segment_vs_cluster(self, clustered):
        table = SegmentAnalyzer().cross_tabulate(clustered, 'segment', 'cluster')

        assert table.loc['Champions', 1] == 2
        assert table.loc['At Risk', 2] == 3
        assert table.values.sum() == len(clustered)

    def test_row_percentages(self, clustered):
        table = SegmentAnalyzer().cross_tabulate(clustered, 'segment', 'cluster', normalize=True)
        np.testing.assert_allclose(table.sum(axis=1).values, 100.0)

    def test_segment_distribution(self, clustered):
        dist = SegmentAnalyzer().segment_distribution(clustered, 'segment')

        assert dist.iloc[0]['segment'] == 'At Risk'
        assert dist['cumulative_pct'].iloc[-1] == pytest.approx(100.0)


def test_summary_text(clustered):
    analyzer = SegmentAnalyzer()
    summary = analyzer.profile_clusters(clustered, 'cluster')

    text = analyzer.summarize(summary, {'between_total_ratio': 0.75})

    assert 'Number of clusters: 2' in text
    assert 'Between/total SS: 0.750' in text
    assert 'Cluster 1' in text
