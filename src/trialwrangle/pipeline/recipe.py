"""
Recipe: a declarative, replayable list of pre-processing steps.

A recipe is declared without data, fit once on training data with
``prep`` and then applied identically to training or new data with
``bake``. Outcome and identifier columns are carried through untouched.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import joblib
import pandas as pd

from ..config import TrialSchema
from .preprocessing import (
    ColumnSelector,
    DummyEncodingStep,
    KNNImputationStep,
    NormalizationStep,
)

logger = logging.getLogger(__name__)


class Recipe:
    """Ordered pre-processing steps with outcome and identifier roles."""

    def __init__(self,
                 outcome: Optional[str] = None,
                 id_cols: Optional[Sequence[str]] = None,
                 predictors: Optional[Sequence[str]] = None):
        """
        Args:
            outcome: Outcome column, never transformed
            id_cols: Identifier columns, never transformed
            predictors: Predictor columns; all remaining columns when omitted
        """
        self.outcome = outcome
        self.id_cols = list(id_cols or [])
        self.predictors = list(predictors) if predictors is not None else None
        self.steps: List[Any] = []
        self.is_prepped = False
        self.training_: Optional[pd.DataFrame] = None
        self.variables_: List[str] = []

    # ---------- Declaration ----------
    @property
    def non_predictors(self) -> List[str]:
        cols = list(self.id_cols)
        if self.outcome is not None:
            cols.append(self.outcome)
        return cols

    def step_impute_knn(self, columns: ColumnSelector = 'all_predictors', neighbors: int = 5) -> 'Recipe':
        """Add a k-nearest-neighbor imputation step."""
        self.steps.append(KNNImputationStep(columns=columns, neighbors=neighbors))
        return self

    def step_normalize(self, columns: ColumnSelector = 'all_numeric_predictors') -> 'Recipe':
        """Add a centering and scaling step (mean 0, sd 1)."""
        self.steps.append(NormalizationStep(columns=columns, method='standard'))
        return self

    def step_range(self, columns: ColumnSelector = 'all_numeric_predictors') -> 'Recipe':
        """Add a rescaling step to the [0, 1] range."""
        self.steps.append(NormalizationStep(columns=columns, method='range'))
        return self

    def step_dummy(self, columns: ColumnSelector = 'all_nominal_predictors', one_hot: bool = False) -> 'Recipe':
        """Add a dummy (indicator) encoding step."""
        self.steps.append(DummyEncodingStep(columns=columns, one_hot=one_hot))
        return self

    # ---------- Fitting ----------
    def _select_variables(self, data: pd.DataFrame) -> pd.DataFrame:
        if self.predictors is None:
            return data
        keep = [col for col in data.columns if col in self.non_predictors or col in self.predictors]
        missing = [col for col in self.predictors if col not in data.columns]
        if missing:
            raise KeyError(f"Predictor columns not found: {missing}")
        return data[keep]

    def prep(self, training: pd.DataFrame) -> 'Recipe':
        """
        Fit every step in order on the training data.

        Each step is fit on the output of the previous steps, so a
        normalization step after imputation sees no missing values.
        """
        if not self.steps:
            logger.warning("Prepping a recipe without steps")

        start_time = time.time()
        current = self._select_variables(training)
        self.variables_ = list(current.columns)

        for i, step in enumerate(self.steps, start=1):
            step.exclude = self.non_predictors
            logger.info(f"Prepping step {i}/{len(self.steps)}: {type(step).__name__}")
            current = step.fit(current).transform(current)

        self.training_ = current
        self.is_prepped = True
        elapsed_time = time.time() - start_time
        logger.info(f"Recipe prepped on {len(training)} rows in {elapsed_time:.2f} seconds")
        return self

    def bake(self, new_data: Optional[pd.DataFrame] = None) -> pd.DataFrame:
        """
        Apply the fitted steps.

        Args:
            new_data: Data to process; None returns the processed training data

        Returns:
            Processed frame
        """
        if not self.is_prepped:
            raise RuntimeError("Recipe must be prepped before it can be baked")
        if new_data is None:
            return self.training_.copy()

        # The outcome may be absent when baking data to predict on
        current = self._select_variables(new_data)
        for step in self.steps:
            current = step.transform(current)
        return current

    # ---------- Inspection ----------
    def summary(self) -> pd.DataFrame:
        """Baked variables with their type, role and whether a step created them."""
        if not self.is_prepped:
            raise RuntimeError("Recipe must be prepped before it can be summarized")

        rows = []
        for col in self.training_.columns:
            if col == self.outcome:
                role = 'outcome'
            elif col in self.id_cols:
                role = 'id'
            else:
                role = 'predictor'
            rows.append({
                'variable': col,
                'type': 'numeric' if pd.api.types.is_numeric_dtype(self.training_[col]) else 'nominal',
                'role': role,
                'source': 'original' if col in self.variables_ else 'derived',
            })
        return pd.DataFrame(rows)

    def tidy(self) -> pd.DataFrame:
        """One row per step with the columns it was fit on."""
        rows = []
        for i, step in enumerate(self.steps, start=1):
            fitted = list(step.get_feature_names_out()) if self.is_prepped else []
            rows.append({
                'number': i,
                'step': type(step).__name__,
                'columns': ', '.join(fitted) if self.is_prepped else str(step.columns),
                'trained': self.is_prepped,
            })
        return pd.DataFrame(rows)

    def save(self, path: Union[str, Path]) -> Path:
        """Persist the (prepped) recipe with joblib."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(self, path)
        logger.info(f"Recipe saved to {path}")
        return path

    @staticmethod
    def load(path: Union[str, Path]) -> 'Recipe':
        recipe = joblib.load(path)
        if not isinstance(recipe, Recipe):
            raise TypeError(f"{path} does not contain a Recipe")
        return recipe


def create_recipe(config: Dict[str, Any], schema: Optional[TrialSchema] = None) -> Recipe:
    """Create the walkthrough recipe from configuration."""
    schema = schema or TrialSchema()
    recipe_config = config.get('recipe', {})

    recipe = Recipe(
        outcome=recipe_config.get('outcome', schema.followup_cols[-1]),
        id_cols=[schema.id_col],
        predictors=recipe_config.get('predictors'),
    )

    impute_config = recipe_config.get('impute_knn', {})
    if impute_config.get('enabled', True):
        recipe.step_impute_knn('all_predictors', neighbors=impute_config.get('neighbors', 5))

    if recipe_config.get('normalize', {}).get('enabled', True):
        recipe.step_normalize('all_numeric_predictors')

    dummy_config = recipe_config.get('dummy', {})
    if dummy_config.get('enabled', True):
        recipe.step_dummy('all_nominal_predictors', one_hot=dummy_config.get('one_hot', False))

    logger.info(f"Created recipe with {len(recipe.steps)} steps for outcome '{recipe.outcome}'")
    return recipe
