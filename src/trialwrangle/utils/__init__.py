"""Utility modules for the modeling workflow."""

from .experiment_tracking import ExperimentTracker, setup_experiment_tracking
from .model_utils import RegressionEvaluator, ModelComparator

__all__ = [
    'ExperimentTracker',
    'setup_experiment_tracking',
    'RegressionEvaluator',
    'ModelComparator',
]
