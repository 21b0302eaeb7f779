"""
Two-table joins: mutating joins (left, right, inner, full) and filtering
joins (semi, anti).
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

logger = logging.getLogger(__name__)

JoinKeys = Union[str, Sequence[str], Dict[str, str]]

MUTATING_JOINS = {
    'left': 'left',
    'right': 'right',
    'inner': 'inner',
    'full': 'outer',
}
FILTERING_JOINS = ('semi', 'anti')


def _resolve_keys(by: JoinKeys) -> Tuple[List[str], List[str]]:
    if isinstance(by, str):
        return [by], [by]
    if isinstance(by, dict):
        return list(by.keys()), list(by.values())
    return list(by), list(by)


def join_tables(left: pd.DataFrame,
                right: pd.DataFrame,
                by: JoinKeys,
                how: str = 'left',
                suffixes: Tuple[str, str] = ('_x', '_y'),
                validate: Optional[str] = None) -> pd.DataFrame:
    """
    Join two tables on key columns.

    Args:
        left: Left table
        right: Right table
        by: Key column name, list of names, or ``{left_name: right_name}``
        how: 'left', 'right', 'inner', 'full', 'semi' or 'anti'
        suffixes: Suffixes for overlapping non-key columns
        validate: Optional key relationship check passed to ``DataFrame.merge``
            ('one_to_one', 'one_to_many', 'many_to_one')

    Returns:
        Joined table. Mutating joins keep a single copy of the key columns
        under the left names; filtering joins return rows of ``left`` only.
    """
    left_on, right_on = _resolve_keys(by)

    if how in FILTERING_JOINS:
        right_keys = right[right_on].drop_duplicates()
        right_keys.columns = left_on
        marked = left.merge(right_keys, on=left_on, how='left', indicator='_merge')
        matched = (marked['_merge'] == 'both').to_numpy()
        result = left.loc[matched if how == 'semi' else ~matched]
        logger.info(f"{how} join kept {len(result)} of {len(left)} left rows")
        return result

    if how not in MUTATING_JOINS:
        raise ValueError(f"Unknown join type: {how}. "
                         f"Expected one of {list(MUTATING_JOINS) + list(FILTERING_JOINS)}")

    if left_on == right_on:
        result = left.merge(right, on=left_on, how=MUTATING_JOINS[how],
                            suffixes=suffixes, validate=validate)
    else:
        result = left.merge(right, left_on=left_on, right_on=right_on, how=MUTATING_JOINS[how],
                            suffixes=suffixes, validate=validate)
        # Collapse the right-hand key columns into the left names
        for l_col, r_col in zip(left_on, right_on):
            if r_col in result.columns and r_col not in left.columns:
                result[l_col] = result[l_col].fillna(result[r_col])
                result = result.drop(columns=r_col)

    logger.info(f"{how} join: {len(left)} x {len(right)} rows -> {len(result)} rows")
    return result


def join_summary(left: pd.DataFrame, right: pd.DataFrame, by: JoinKeys) -> Dict[str, int]:
    """Count keys present in both tables, only in ``left`` and only in ``right``."""
    left_on, right_on = _resolve_keys(by)
    left_keys = set(map(tuple, left[left_on].drop_duplicates().itertuples(index=False)))
    right_keys = set(map(tuple, right[right_on].drop_duplicates().itertuples(index=False)))

    summary = {
        'matched': len(left_keys & right_keys),
        'left_only': len(left_keys - right_keys),
        'right_only': len(right_keys - left_keys),
    }
    if summary['left_only'] or summary['right_only']:
        logger.warning(f"Join keys {left_on} do not fully match: {summary}")
    return summary
