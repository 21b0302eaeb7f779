"""Group summaries, arm comparisons and resampling."""

from .statistics import describe_by_group, compare_groups, paired_change_test
from .resampling import (
    Bootstrap,
    initial_split,
    bootstraps,
    bootstrap_statistic,
    percentile_interval,
    group_mean_difference,
)

__all__ = [
    'describe_by_group',
    'compare_groups',
    'paired_change_test',
    'Bootstrap',
    'initial_split',
    'bootstraps',
    'bootstrap_statistic',
    'percentile_interval',
    'group_mean_difference',
]
