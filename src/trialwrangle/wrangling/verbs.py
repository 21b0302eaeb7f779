"""
Single-table verbs: column selection, row filtering, sorting, derived
columns and grouped summaries. Each verb is a thin, logged wrapper around
one pandas call and returns a new DataFrame.
"""

import logging
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from ..config import TrialSchema

logger = logging.getLogger(__name__)

ColumnList = Union[str, Sequence[str]]


def _as_list(columns: Optional[ColumnList]) -> List[str]:
    if columns is None:
        return []
    if isinstance(columns, str):
        return [columns]
    return list(columns)


def select_columns(df: pd.DataFrame,
                   columns: Optional[ColumnList] = None,
                   starts_with: Optional[str] = None,
                   ends_with: Optional[str] = None,
                   contains: Optional[str] = None,
                   matches: Optional[str] = None,
                   exclude: Optional[ColumnList] = None) -> pd.DataFrame:
    """
    Select columns by name and/or name pattern.

    Selectors are combined as a union and the result keeps the frame's
    original column order. With no selector every column is kept.

    Args:
        df: Input frame
        columns: Column names that must exist (missing names raise KeyError)
        starts_with: Literal name prefix
        ends_with: Literal name suffix
        contains: Literal substring
        matches: Regular expression searched in each name
        exclude: Names dropped after selection

    Returns:
        Frame with the selected columns
    """
    names = _as_list(columns)
    missing = [col for col in names if col not in df.columns]
    if missing:
        raise KeyError(f"Columns not found: {missing}")

    patterns = []
    if starts_with is not None:
        patterns.append('^' + re.escape(starts_with))
    if ends_with is not None:
        patterns.append(re.escape(ends_with) + '$')
    if contains is not None:
        patterns.append(re.escape(contains))
    if matches is not None:
        patterns.append(matches)

    if not names and not patterns:
        selected = list(df.columns)
    else:
        selected = [
            col for col in df.columns
            if col in names or any(re.search(p, str(col)) for p in patterns)
        ]

    dropped = set(_as_list(exclude))
    selected = [col for col in selected if col not in dropped]

    logger.debug(f"select_columns kept {len(selected)} of {df.shape[1]} columns")
    return df.loc[:, selected]


def filter_rows(df: pd.DataFrame,
                condition: Union[str, pd.Series, Callable[[pd.DataFrame], pd.Series]]) -> pd.DataFrame:
    """
    Keep the rows where ``condition`` holds.

    ``condition`` is a ``DataFrame.query`` expression, a boolean mask aligned
    on the index, or a callable returning such a mask. Rows where the
    condition evaluates to NaN are dropped.
    """
    if isinstance(condition, str):
        result = df.query(condition)
    else:
        mask = condition(df) if callable(condition) else condition
        if not isinstance(mask, pd.Series):
            mask = pd.Series(mask, index=df.index)
        result = df.loc[mask.fillna(False).astype(bool)]

    logger.debug(f"filter_rows kept {len(result)} of {len(df)} rows")
    return result


def arrange(df: pd.DataFrame,
            by: ColumnList,
            descending: Union[bool, Sequence[bool]] = False) -> pd.DataFrame:
    """Sort rows by one or more columns (stable, missing values last)."""
    if isinstance(descending, bool):
        ascending = not descending
    else:
        ascending = [not d for d in descending]
    return df.sort_values(by=_as_list(by), ascending=ascending, kind='mergesort', na_position='last')


def mutate(df: pd.DataFrame, **columns) -> pd.DataFrame:
    """Add or replace columns; callables receive the frame (``DataFrame.assign``)."""
    return df.assign(**columns)


def rename_columns(df: pd.DataFrame, mapping: Dict[str, str]) -> pd.DataFrame:
    """Rename columns, old name -> new name. Unknown names raise KeyError."""
    return df.rename(columns=mapping, errors='raise')


def distinct(df: pd.DataFrame, columns: Optional[ColumnList] = None) -> pd.DataFrame:
    """Unique rows over ``columns`` (all columns when omitted)."""
    cols = _as_list(columns) or list(df.columns)
    return df.loc[:, cols].drop_duplicates().reset_index(drop=True)


def count_by(df: pd.DataFrame, columns: ColumnList, name: str = 'n', sort: bool = False) -> pd.DataFrame:
    """Number of rows per combination of ``columns``; missing keys form their own group."""
    counts = df.groupby(_as_list(columns), dropna=False).size().reset_index(name=name)
    if sort:
        counts = counts.sort_values(name, ascending=False, kind='mergesort').reset_index(drop=True)
    return counts


def summarize(df: pd.DataFrame,
              group_by: Optional[ColumnList] = None,
              **aggregations: Tuple[str, Union[str, Callable]]) -> pd.DataFrame:
    """
    Collapse rows into summary values.

    Aggregations are given as ``output_name=(column, func)`` pairs, e.g.
    ``summarize(df, group_by='group', mean_baseline=('baseline', 'mean'))``.
    Without ``group_by`` the result is a single row.
    """
    if not aggregations:
        raise ValueError("summarize requires at least one aggregation")

    keys = _as_list(group_by)
    if keys:
        result = df.groupby(keys, observed=True).agg(**aggregations).reset_index()
    else:
        result = pd.DataFrame({
            name: [df[col].agg(func)] for name, (col, func) in aggregations.items()
        })

    logger.debug(f"summarize produced {len(result)} rows over groups {keys or 'none'}")
    return result


def slice_max(df: pd.DataFrame, order_by: str, n: int = 1,
              group_by: Optional[ColumnList] = None) -> pd.DataFrame:
    """The ``n`` rows with the largest ``order_by`` values, per group when given."""
    keys = _as_list(group_by)
    if not keys:
        return df.nlargest(n, order_by)
    ordered = df.sort_values(order_by, ascending=False, kind='mergesort', na_position='last')
    return ordered.groupby(keys, observed=True).head(n)


def add_change_from_baseline(df: pd.DataFrame,
                             schema: Optional[TrialSchema] = None,
                             percent: bool = False) -> pd.DataFrame:
    """
    Add ``change_<followup>`` columns (follow-up minus baseline).

    With ``percent`` the ``pct_change_<followup>`` columns are added as well.
    Missing follow-ups propagate as NaN.
    """
    schema = schema or TrialSchema()
    baseline = df[schema.baseline_col]

    new_columns = {}
    for col in schema.followup_cols:
        new_columns[f'change_{col}'] = df[col] - baseline
        if percent:
            new_columns[f'pct_change_{col}'] = (df[col] - baseline) / baseline * 100

    return df.assign(**new_columns)
