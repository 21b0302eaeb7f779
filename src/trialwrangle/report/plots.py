"""
Illustrative figures for the walkthrough report.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def _save(fig, path: Union[str, Path], dpi: int) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=dpi)
    plt.close(fig)
    logger.info(f"Saved figure {path}")
    return path


def plot_group_trajectories(summary: pd.DataFrame,
                            path: Union[str, Path],
                            group_col: str = 'group',
                            visit_col: str = 'variable',
                            visit_order: Optional[Sequence[str]] = None,
                            dpi: int = 120) -> Path:
    """
    Mean measurement per visit for each arm, with one standard error bars.

    ``summary`` is the output of ``describe_by_group`` (columns: group,
    variable, mean, se).
    """
    visits = list(visit_order) if visit_order is not None else list(pd.unique(summary[visit_col]))
    positions = {visit: i for i, visit in enumerate(visits)}

    fig, ax = plt.subplots(figsize=(7, 4.5))
    for group, rows in summary.groupby(group_col, sort=True):
        rows = rows.assign(_pos=rows[visit_col].map(positions)).sort_values('_pos')
        ax.errorbar(rows['_pos'], rows['mean'], yerr=rows['se'], marker='o', capsize=4, label=str(group))

    ax.set_xticks(range(len(visits)))
    ax.set_xticklabels(visits)
    ax.set_xlabel("Visit")
    ax.set_ylabel("Mean measurement (± SE)")
    ax.set_title("Measurement trajectory by arm")
    ax.legend(title=group_col)
    return _save(fig, path, dpi)


def plot_change_distribution(df: pd.DataFrame,
                             value_col: str,
                             path: Union[str, Path],
                             group_col: str = 'group',
                             dpi: int = 120) -> Path:
    """Box plot of ``value_col`` per arm with the raw points overlaid."""
    groups = sorted(df[group_col].dropna().unique())
    data = [df.loc[df[group_col] == g, value_col].dropna().to_numpy() for g in groups]

    fig, ax = plt.subplots(figsize=(6, 4.5))
    ax.boxplot(data, showfliers=False)
    ax.set_xticks(range(1, len(groups) + 1))
    ax.set_xticklabels(groups)
    rng = np.random.default_rng(0)
    for i, values in enumerate(data, start=1):
        ax.scatter(i + rng.uniform(-0.12, 0.12, size=len(values)), values, s=10, alpha=0.5)

    ax.axhline(0, color='grey', linewidth=0.8, linestyle='--')
    ax.set_xlabel(group_col)
    ax.set_ylabel(value_col)
    ax.set_title(f"{value_col} by arm")
    return _save(fig, path, dpi)


def plot_bootstrap_distribution(estimates: pd.Series,
                                interval: Tuple[float, float, float],
                                path: Union[str, Path],
                                label: str = 'estimate',
                                dpi: int = 120) -> Path:
    """Histogram of bootstrap estimates with the percentile interval marked."""
    lower, estimate, upper = interval

    fig, ax = plt.subplots(figsize=(6, 4))
    ax.hist(estimates.dropna(), bins=30, color='steelblue', alpha=0.8)
    for value, style in ((lower, '--'), (estimate, '-'), (upper, '--')):
        ax.axvline(value, color='black', linestyle=style, linewidth=1)
    ax.set_xlabel(label)
    ax.set_ylabel("Bootstrap resamples")
    ax.set_title(f"Bootstrap distribution ({lower:.2f}, {upper:.2f})")
    return _save(fig, path, dpi)
