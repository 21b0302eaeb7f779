"""
trialwrangle - clinical trial data-wrangling walkthrough

Selection, filtering, sorting, aggregation, reshaping and joins over a
small two-arm clinical trial, followed by a pre-processing recipe
(k-NN imputation, normalization, dummy encoding) and a linear model.
"""

__version__ = "1.0.0"

from .config import TrialSchema, load_config, get_schema
from .data_generation import TrialDataGenerator
from .pipeline import Recipe, TrialModelWorkflow
from .report import WalkthroughReport
from .wrangling import load_trial_data, TrialDataValidator

__all__ = [
    'TrialSchema',
    'load_config',
    'get_schema',
    'TrialDataGenerator',
    'Recipe',
    'TrialModelWorkflow',
    'WalkthroughReport',
    'load_trial_data',
    'TrialDataValidator',
]
