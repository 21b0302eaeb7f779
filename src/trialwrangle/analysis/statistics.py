"""
Descriptive summaries and two-arm comparisons.
"""

import logging
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy import stats

logger = logging.getLogger(__name__)


def describe_by_group(df: pd.DataFrame,
                      value_cols: Union[str, Sequence[str]],
                      group_by: Union[str, Sequence[str]]) -> pd.DataFrame:
    """
    Per-group n, mean, sd, standard error and median for each value column.

    Returns:
        Long table with one row per group and variable
    """
    value_cols = [value_cols] if isinstance(value_cols, str) else list(value_cols)
    keys = [group_by] if isinstance(group_by, str) else list(group_by)

    long_df = df.melt(id_vars=keys, value_vars=value_cols, var_name='variable', value_name='value')
    summary = (
        long_df.groupby(keys + ['variable'], observed=True, sort=False)['value']
        .agg(n='count', mean='mean', sd='std', median='median')
        .reset_index()
    )
    summary['se'] = summary['sd'] / np.sqrt(summary['n'])
    return summary[keys + ['variable', 'n', 'mean', 'sd', 'se', 'median']]


def compare_groups(df: pd.DataFrame,
                   value_col: str,
                   group_col: str,
                   groups: Optional[List[str]] = None,
                   equal_var: bool = False) -> Dict[str, float]:
    """
    Two-sample t-test of ``value_col`` between two arms.

    Welch's test is used unless ``equal_var``. Missing values are dropped.

    Args:
        df: Data with one row per patient
        value_col: Outcome column
        group_col: Arm column
        groups: [reference, comparison]; defaults to the two observed arms in sorted order
        equal_var: Pool variances (Student's t-test)

    Returns:
        Dictionary with arm means, difference (comparison - reference),
        t statistic, p-value and sample sizes
    """
    if groups is None:
        groups = sorted(df[group_col].dropna().unique().tolist())
    if len(groups) != 2:
        raise ValueError(f"compare_groups needs exactly two groups, got {groups}")

    reference = df.loc[df[group_col] == groups[0], value_col].dropna()
    comparison = df.loc[df[group_col] == groups[1], value_col].dropna()

    result = stats.ttest_ind(comparison, reference, equal_var=equal_var)

    comparison_stats = {
        'reference_group': groups[0],
        'comparison_group': groups[1],
        'reference_mean': float(reference.mean()),
        'comparison_mean': float(comparison.mean()),
        'mean_difference': float(comparison.mean() - reference.mean()),
        't_statistic': float(result.statistic),
        'p_value': float(result.pvalue),
        'n_reference': int(len(reference)),
        'n_comparison': int(len(comparison)),
    }
    logger.info(f"{value_col}: {groups[1]} - {groups[0]} = "
                f"{comparison_stats['mean_difference']:.2f} (p={comparison_stats['p_value']:.4f})")
    return comparison_stats


def paired_change_test(df: pd.DataFrame, before: str, after: str) -> Dict[str, float]:
    """Paired t-test of ``after`` against ``before`` on complete pairs."""
    pairs = df[[before, after]].dropna()
    result = stats.ttest_rel(pairs[after], pairs[before])
    return {
        'mean_change': float((pairs[after] - pairs[before]).mean()),
        't_statistic': float(result.statistic),
        'p_value': float(result.pvalue),
        'n_pairs': int(len(pairs)),
    }
