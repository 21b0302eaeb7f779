"""
Reshaping between wide (one row per patient) and long (one row per
patient-visit) layouts.
"""

import logging
import re
from typing import List, Optional, Sequence, Union

import pandas as pd

logger = logging.getLogger(__name__)


def pivot_longer(df: pd.DataFrame,
                 cols: Sequence[str],
                 names_to: str = 'visit',
                 values_to: str = 'value',
                 id_cols: Optional[Sequence[str]] = None,
                 names_prefix: Optional[str] = None,
                 drop_na: bool = False) -> pd.DataFrame:
    """
    Stack ``cols`` into a name column and a value column.

    Args:
        df: Wide frame
        cols: Columns to stack
        names_to: Name of the column holding the former column names
        values_to: Name of the column holding the values
        id_cols: Columns repeated on every stacked row (default: all others)
        names_prefix: Prefix stripped from the stacked names
        drop_na: Drop stacked rows whose value is missing

    Returns:
        Long frame ordered by the original row, then by ``cols`` order
    """
    cols = list(cols)
    missing = [col for col in cols if col not in df.columns]
    if missing:
        raise KeyError(f"Columns to pivot not found: {missing}")

    if id_cols is None:
        id_cols = [col for col in df.columns if col not in cols]
    id_cols = list(id_cols)

    # Row order within each original row follows cols
    long_df = df.reset_index(drop=True).assign(_row=range(len(df))).melt(
        id_vars=['_row'] + id_cols,
        value_vars=cols,
        var_name=names_to,
        value_name=values_to,
    )
    long_df[names_to] = pd.Categorical(long_df[names_to], categories=cols, ordered=True)
    long_df = long_df.sort_values(['_row', names_to], kind='mergesort').drop(columns='_row')
    long_df[names_to] = long_df[names_to].astype(str)

    if names_prefix:
        long_df[names_to] = long_df[names_to].str.replace(f'^{re.escape(names_prefix)}', '', regex=True)
    if drop_na:
        long_df = long_df.dropna(subset=[values_to])

    logger.debug(f"pivot_longer: {df.shape} -> {long_df.shape}")
    return long_df.reset_index(drop=True)


def pivot_wider(df: pd.DataFrame,
                names_from: str,
                values_from: str,
                id_cols: Optional[Union[str, Sequence[str]]] = None,
                names_prefix: str = '') -> pd.DataFrame:
    """
    Spread a name/value column pair into one column per name.

    Each combination of ``id_cols`` and ``names_from`` must appear once;
    duplicates raise ValueError. Missing combinations become NaN.

    Args:
        df: Long frame
        names_from: Column whose values become column names
        values_from: Column whose values fill the new columns
        id_cols: Columns identifying a row (default: all others)
        names_prefix: Prefix added to the new column names

    Returns:
        Wide frame with ``id_cols`` followed by the new columns in order of
        first appearance
    """
    if id_cols is None:
        id_cols = [col for col in df.columns if col not in (names_from, values_from)]
    elif isinstance(id_cols, str):
        id_cols = [id_cols]
    id_cols = list(id_cols)

    if df.duplicated(subset=id_cols + [names_from]).any():
        raise ValueError(
            f"Values are not uniquely identified by {id_cols + [names_from]}; "
            "summarize duplicates before pivoting"
        )

    name_order: List[str] = list(pd.unique(df[names_from]))
    wide = df.pivot(index=id_cols, columns=names_from, values=values_from)
    wide = wide.reindex(columns=name_order)
    wide.columns = [f'{names_prefix}{col}' for col in wide.columns]
    wide = wide.reset_index()

    logger.debug(f"pivot_wider: {df.shape} -> {wide.shape}")
    return wide
