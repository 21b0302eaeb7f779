"""
Train/test splitting and bootstrap resampling.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split
from tqdm import tqdm

logger = logging.getLogger(__name__)


def initial_split(df: pd.DataFrame,
                  prop: float = 0.75,
                  strata: Optional[str] = None,
                  seed: int = 42) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Split rows into a training and a testing set.

    Args:
        df: Data to split
        prop: Fraction of rows in the training set
        strata: Column whose class proportions are kept in both sets
        seed: Random state

    Returns:
        (training, testing) frames, original index preserved
    """
    if not 0 < prop < 1:
        raise ValueError(f"prop must be between 0 and 1, got {prop}")

    stratify = df[strata] if strata else None
    training, testing = train_test_split(df, train_size=prop, stratify=stratify, random_state=seed)
    logger.info(f"Split {len(df)} rows into {len(training)} training / {len(testing)} testing"
                + (f" stratified by {strata}" if strata else ""))
    return training, testing


@dataclass
class Bootstrap:
    """One bootstrap resample, stored as row positions of the source frame."""
    id: str
    analysis_idx: np.ndarray
    assessment_idx: np.ndarray

    def analysis(self, df: pd.DataFrame) -> pd.DataFrame:
        """Rows drawn with replacement."""
        return df.iloc[self.analysis_idx]

    def assessment(self, df: pd.DataFrame) -> pd.DataFrame:
        """Out-of-bag rows never drawn into the analysis set."""
        return df.iloc[self.assessment_idx]


def bootstraps(df: pd.DataFrame, times: int = 25, seed: int = 42) -> List[Bootstrap]:
    """Draw ``times`` bootstrap resamples of the rows of ``df``."""
    if times < 1:
        raise ValueError(f"times must be positive, got {times}")

    rng = np.random.default_rng(seed)
    n = len(df)
    width = len(str(times))
    resamples = []
    for i in range(times):
        analysis_idx = rng.integers(0, n, size=n)
        assessment_idx = np.setdiff1d(np.arange(n), analysis_idx)
        resamples.append(Bootstrap(f"Bootstrap{i + 1:0{width}d}", analysis_idx, assessment_idx))
    return resamples


def bootstrap_statistic(df: pd.DataFrame,
                        statistic: Callable[[pd.DataFrame], float],
                        times: int = 200,
                        seed: int = 42,
                        show_progress: bool = False) -> pd.Series:
    """
    Evaluate ``statistic`` on every bootstrap resample.

    Returns:
        Series of estimates indexed by resample id
    """
    start_time = time.time()
    resamples = bootstraps(df, times=times, seed=seed)

    estimates = {}
    for resample in tqdm(resamples, desc="Bootstrapping", disable=not show_progress):
        estimates[resample.id] = float(statistic(resample.analysis(df)))

    elapsed_time = time.time() - start_time
    logger.info(f"Computed {times} bootstrap estimates in {elapsed_time:.2f} seconds")
    return pd.Series(estimates, name='estimate')


def percentile_interval(estimates: pd.Series, alpha: float = 0.05) -> Tuple[float, float, float]:
    """Percentile confidence interval: (lower, mean estimate, upper)."""
    values = estimates.dropna().to_numpy()
    if len(values) == 0:
        raise ValueError("No bootstrap estimates to summarize")
    lower, upper = np.quantile(values, [alpha / 2, 1 - alpha / 2])
    return float(lower), float(values.mean()), float(upper)


def group_mean_difference(value_col: str, group_col: str,
                          reference: str, comparison: str) -> Callable[[pd.DataFrame], float]:
    """Statistic factory: mean of ``value_col`` in ``comparison`` minus ``reference``."""
    def _statistic(data: pd.DataFrame) -> float:
        means = data.groupby(group_col)[value_col].mean()
        return means.get(comparison, np.nan) - means.get(reference, np.nan)

    return _statistic
