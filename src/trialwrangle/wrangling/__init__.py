"""Loading, single-table verbs, reshaping and joins."""

from .loading import (
    clean_column_names,
    read_table,
    key_as_string,
    load_table,
    load_trial_data,
    missing_value_report,
    TrialDataValidator,
)
from .verbs import (
    select_columns,
    filter_rows,
    arrange,
    mutate,
    rename_columns,
    distinct,
    count_by,
    summarize,
    slice_max,
    add_change_from_baseline,
)
from .reshape import pivot_longer, pivot_wider
from .joins import join_tables, join_summary

__all__ = [
    'clean_column_names',
    'read_table',
    'key_as_string',
    'load_table',
    'load_trial_data',
    'missing_value_report',
    'TrialDataValidator',
    'select_columns',
    'filter_rows',
    'arrange',
    'mutate',
    'rename_columns',
    'distinct',
    'count_by',
    'summarize',
    'slice_max',
    'add_change_from_baseline',
    'pivot_longer',
    'pivot_wider',
    'join_tables',
    'join_summary',
]
