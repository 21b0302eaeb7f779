"""Figures and the rendered walkthrough document."""

from .plots import plot_group_trajectories, plot_change_distribution, plot_bootstrap_distribution
from .walkthrough import WalkthroughReport, ReportSection

__all__ = [
    'plot_group_trajectories',
    'plot_change_distribution',
    'plot_bootstrap_distribution',
    'WalkthroughReport',
    'ReportSection',
]
