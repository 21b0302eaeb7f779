"""
Unit tests for group statistics and resampling.
"""

import numpy as np
import pandas as pd
import pytest
from scipy import stats

from trialwrangle.analysis.statistics import compare_groups, describe_by_group, paired_change_test


class TestDescribeByGroup:
    """Test per-arm descriptive summaries."""

    def test_columns_and_counts(self, sample_trial_data):
        summary = describe_by_group(sample_trial_data, ['baseline', 'followup_2'], 'group')

        assert list(summary.columns) == ['group', 'variable', 'n', 'mean', 'sd', 'se', 'median']
        assert len(summary) == 4

        row = summary[(summary['group'] == 'placebo') & (summary['variable'] == 'baseline')].iloc[0]
        placebo = sample_trial_data.loc[sample_trial_data['group'] == 'placebo', 'baseline']
        assert row['n'] == 20
        assert row['mean'] == pytest.approx(placebo.mean())
        assert row['se'] == pytest.approx(placebo.std() / np.sqrt(20))

    def test_missing_values_not_counted(self, sample_trial_data):
        summary = describe_by_group(sample_trial_data, 'followup_2', 'group')
        assert summary['n'].sum() == 37


class TestCompareGroups:
    """Test two-arm comparisons."""

    def test_welch_test(self, sample_trial_data):
        result = compare_groups(sample_trial_data, 'followup_2', 'group')

        assert result['reference_group'] == 'placebo'
        assert result['comparison_group'] == 'treatment'
        assert result['n_reference'] + result['n_comparison'] == 37

        placebo = sample_trial_data.loc[sample_trial_data['group'] == 'placebo', 'followup_2'].dropna()
        treatment = sample_trial_data.loc[sample_trial_data['group'] == 'treatment', 'followup_2'].dropna()
        expected = stats.ttest_ind(treatment, placebo, equal_var=False)

        assert result['mean_difference'] == pytest.approx(treatment.mean() - placebo.mean())
        assert result['t_statistic'] == pytest.approx(expected.statistic)
        assert result['p_value'] == pytest.approx(expected.pvalue)

    def test_explicit_group_order(self, sample_trial_data):
        default = compare_groups(sample_trial_data, 'baseline', 'group')
        swapped = compare_groups(sample_trial_data, 'baseline', 'group', groups=['treatment', 'placebo'])
        assert swapped['mean_difference'] == pytest.approx(-default['mean_difference'])

    def test_requires_two_groups(self, sample_trial_data):
        df = sample_trial_data.copy()
        df.loc[0, 'group'] = 'open_label'
        with pytest.raises(ValueError):
            compare_groups(df, 'baseline', 'group')

    def test_paired_change(self, sample_trial_data):
        result = paired_change_test(sample_trial_data, 'baseline', 'followup_1')
        assert result['n_pairs'] == 38
        pairs = sample_trial_data[['baseline', 'followup_1']].dropna()
        assert result['mean_change'] == pytest.approx((pairs['followup_1'] - pairs['baseline']).mean())
        assert 0.0 <= result['p_value'] <= 1.0


# Test resampling
from trialwrangle.analysis.resampling import (
    Bootstrap,
    bootstrap_statistic,
    bootstraps,
    group_mean_difference,
    initial_split,
    percentile_interval,
)


class TestInitialSplit:
    """Test train/test splitting."""

    def test_split_sizes(self, sample_trial_data):
        training, testing = initial_split(sample_trial_data, prop=0.75, seed=42)
        assert len(training) == 30
        assert len(testing) == 10
        assert set(training.index).isdisjoint(testing.index)

    def test_stratified_split(self, sample_trial_data):
        training, testing = initial_split(sample_trial_data, prop=0.75, strata='group', seed=1)
        assert training['group'].value_counts().tolist() == [15, 15]
        assert testing['group'].value_counts().tolist() == [5, 5]

    def test_reproducible(self, sample_trial_data):
        first, _ = initial_split(sample_trial_data, seed=3)
        second, _ = initial_split(sample_trial_data, seed=3)
        assert first.index.tolist() == second.index.tolist()

    @pytest.mark.parametrize('prop', [0, 1, 1.5])
    def test_invalid_prop(self, sample_trial_data, prop):
        with pytest.raises(ValueError):
            initial_split(sample_trial_data, prop=prop)


class TestBootstraps:
    """Test bootstrap resampling."""

    def test_resample_structure(self, sample_trial_data):
        resamples = bootstraps(sample_trial_data, times=25, seed=42)

        assert len(resamples) == 25
        assert all(isinstance(r, Bootstrap) for r in resamples)
        assert resamples[0].id == 'Bootstrap01'
        assert resamples[-1].id == 'Bootstrap25'

        first = resamples[0]
        assert len(first.analysis(sample_trial_data)) == len(sample_trial_data)
        # Out-of-bag rows never appear in the analysis set
        assert set(first.assessment_idx).isdisjoint(first.analysis_idx)
        assert len(first.assessment(sample_trial_data)) == len(first.assessment_idx)

    def test_invalid_times(self, sample_trial_data):
        with pytest.raises(ValueError):
            bootstraps(sample_trial_data, times=0)

    def test_bootstrap_statistic(self, sample_trial_data):
        statistic = group_mean_difference('baseline', 'group', 'placebo', 'treatment')
        estimates = bootstrap_statistic(sample_trial_data, statistic, times=30, seed=0)

        assert isinstance(estimates, pd.Series)
        assert estimates.name == 'estimate'
        assert len(estimates) == 30
        assert estimates.notnull().all()

        again = bootstrap_statistic(sample_trial_data, statistic, times=30, seed=0)
        pd.testing.assert_series_equal(estimates, again)

    def test_percentile_interval(self):
        estimates = pd.Series(np.arange(101, dtype=float))
        lower, mean, upper = percentile_interval(estimates, alpha=0.1)
        assert lower == pytest.approx(5.0)
        assert mean == pytest.approx(50.0)
        assert upper == pytest.approx(95.0)

    def test_percentile_interval_empty(self):
        with pytest.raises(ValueError):
            percentile_interval(pd.Series([np.nan, np.nan]))

    def test_group_mean_difference(self, sample_trial_data):
        statistic = group_mean_difference('baseline', 'group', 'placebo', 'treatment')
        means = sample_trial_data.groupby('group')['baseline'].mean()
        assert statistic(sample_trial_data) == pytest.approx(means['treatment'] - means['placebo'])


if __name__ == "__main__":
    pytest.main([__file__])
