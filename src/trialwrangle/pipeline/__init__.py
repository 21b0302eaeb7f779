"""Pre-processing recipe and modeling workflow."""

from .preprocessing import (
    KNNImputationStep,
    NormalizationStep,
    DummyEncodingStep,
    resolve_columns,
)
from .recipe import Recipe, create_recipe
from .workflow import TrialModelWorkflow

__all__ = [
    'KNNImputationStep',
    'NormalizationStep',
    'DummyEncodingStep',
    'resolve_columns',
    'Recipe',
    'create_recipe',
    'TrialModelWorkflow',
]
