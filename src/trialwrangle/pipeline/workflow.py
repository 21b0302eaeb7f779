"""
Modeling Workflow

Fits the walkthrough's pre-processing recipe and a linear model of the
final follow-up measurement on a training split, then evaluates on the
held-out split.
"""

import argparse
import logging
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import joblib
import numpy as np
import pandas as pd
import yaml
from sklearn.dummy import DummyRegressor
from sklearn.linear_model import LinearRegression

from ..analysis.resampling import initial_split
from ..config import get_schema, load_config
from ..utils.experiment_tracking import setup_experiment_tracking
from ..utils.model_utils import ModelComparator, RegressionEvaluator
from ..wrangling.loading import TrialDataValidator, load_trial_data
from .recipe import Recipe, create_recipe

logger = logging.getLogger(__name__)


class TrialModelWorkflow:
    """Recipe + linear regression workflow for the trial outcome."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.schema = get_schema(config)
        self.seed = config.get('random_seed', 42)
        self.recipe: Optional[Recipe] = None
        self.model: Optional[LinearRegression] = None
        self.null_model: Optional[DummyRegressor] = None
        self.feature_names: List[str] = []
        self.comparator = ModelComparator()
        self.evaluator = RegressionEvaluator()
        self.experiment_tracker = setup_experiment_tracking(config)

    # ---------- Data ----------
    def load_data(self, data_path: str) -> pd.DataFrame:
        engine = self.config.get('data', {}).get('engine', 'pandas')
        logger.info(f"Loading data from {data_path} using {engine}")
        return load_trial_data(data_path, schema=self.schema, engine=engine)

    def validate_data(self, df: pd.DataFrame) -> Dict[str, List[str]]:
        logger.info("Validating data quality...")
        validator = TrialDataValidator()
        validator.setup_trial_rules(self.schema)
        return validator.validate(df)

    def prepare_data(self, df: pd.DataFrame) -> pd.DataFrame:
        """Drop rows whose outcome is missing; they cannot be used for fitting."""
        outcome = self.outcome
        if outcome not in df.columns:
            raise ValueError(f"Outcome column '{outcome}' not found")

        prepared = df.dropna(subset=[outcome])
        n_dropped = len(df) - len(prepared)
        if n_dropped:
            logger.info(f"Dropped {n_dropped} rows with missing '{outcome}'")
        return prepared

    @property
    def outcome(self) -> str:
        return self.config.get('recipe', {}).get('outcome', self.schema.followup_cols[-1])

    def split_data(self, df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.DataFrame]:
        resampling_cfg = self.config.get('resampling', {})
        strata = self.schema.group_col if resampling_cfg.get('stratify', True) else None
        return initial_split(df, prop=resampling_cfg.get('train_prop', 0.75), strata=strata, seed=self.seed)

    # ---------- Model ----------
    def create_model(self) -> LinearRegression:
        model_cfg = self.config.get('model', {})
        algorithm = model_cfg.get('algorithm', 'linear_regression')
        if algorithm != 'linear_regression':
            raise ValueError(f"Unsupported algorithm: {algorithm}")
        return LinearRegression(fit_intercept=model_cfg.get('fit_intercept', True))

    def _features(self, baked: pd.DataFrame) -> pd.DataFrame:
        return baked[self.feature_names]

    def train_model(self, training: pd.DataFrame) -> Dict[str, float]:
        """Prep the recipe and fit the model on the training split."""
        self.recipe = create_recipe(self.config, self.schema).prep(training)
        baked = self.recipe.bake()

        self.feature_names = [col for col in baked.columns if col not in self.recipe.non_predictors]
        X = self._features(baked)
        y = baked[self.outcome]

        self.model = self.create_model().fit(X, y)
        self.null_model = DummyRegressor(strategy='mean').fit(X, y)
        logger.info(f"Fitted linear model on {len(X)} rows with features {self.feature_names}")

        train_metrics = self.evaluator.calculate_metrics(y, self.model.predict(X))
        return {f'train_{k}': v for k, v in train_metrics.items()}

    def predict(self, new_data: pd.DataFrame) -> np.ndarray:
        if self.model is None or self.recipe is None:
            raise RuntimeError("Workflow must be trained before predicting")
        return self.model.predict(self._features(self.recipe.bake(new_data)))

    def evaluate_model(self, testing: pd.DataFrame) -> Dict[str, float]:
        """Evaluate on held-out data and compare against the mean-only model."""
        y_true = testing[self.outcome].to_numpy()
        y_pred = self.predict(testing)
        null_pred = self.null_model.predict(self._features(self.recipe.bake(testing)))

        self.comparator.add_model('linear_regression', y_true, y_pred)
        self.comparator.add_model('null_model', y_true, null_pred)

        metrics = self.evaluator.calculate_metrics(y_true, y_pred)
        logger.info(f"Test RMSE: {metrics['rmse']:.3f}, R2: {metrics['r2']:.3f}")
        return {f'test_{k}': v for k, v in metrics.items()}

    def coefficients(self) -> pd.DataFrame:
        """Fitted model terms (on the normalized predictor scale)."""
        if self.model is None:
            raise RuntimeError("Workflow must be trained before reading coefficients")
        terms = ['intercept'] + self.feature_names
        estimates = [float(self.model.intercept_)] + [float(c) for c in self.model.coef_]
        return pd.DataFrame({'term': terms, 'estimate': estimates})

    # ---------- Artifacts ----------
    def save_artifacts(self, output_dir: str, metrics: Dict[str, float]):
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)

        joblib.dump({'recipe': self.recipe, 'model': self.model, 'feature_names': self.feature_names},
                    out / "workflow.joblib")

        clean_metrics = {k: (float(v) if isinstance(v, (float, np.floating)) else int(v))
                         for k, v in metrics.items()}
        (out / "metrics.yaml").write_text(yaml.dump(clean_metrics), encoding="utf-8")
        (out / "workflow_config.yaml").write_text(yaml.dump(self.config), encoding="utf-8")
        self.recipe.summary().to_csv(out / "recipe_summary.csv", index=False)
        self.coefficients().to_csv(out / "coefficients.csv", index=False)
        self.comparator.compare_models().to_csv(out / "model_comparison.csv", index=False)

        if self.experiment_tracker:
            self.experiment_tracker.log_dict(clean_metrics, "metrics.yaml")

        logger.info(f"Artifacts saved to {out}")

    @staticmethod
    def load_artifacts(path: str) -> Dict[str, Any]:
        return joblib.load(Path(path) / "workflow.joblib")

    # ---------- Orchestration ----------
    def run_pipeline(self, data_path: str, output_dir: str) -> Dict[str, float]:
        logger.info("Starting modeling workflow...")

        run_context = (
            self.experiment_tracker.start_run("trial_workflow")
            if self.experiment_tracker else nullcontext()
        )
        with run_context:
            if self.experiment_tracker:
                self.experiment_tracker.log_params(self.config)

            df = self.load_data(data_path)
            self.validate_data(df)
            df = self.prepare_data(df)
            training, testing = self.split_data(df)

            train_metrics = self.train_model(training)
            test_metrics = self.evaluate_model(testing)
            all_metrics = {**train_metrics, **test_metrics}

            if self.experiment_tracker:
                self.experiment_tracker.log_metrics(all_metrics)

            self.save_artifacts(output_dir, all_metrics)

            if self.experiment_tracker:
                self.experiment_tracker.log_artifacts(output_dir)
                self.experiment_tracker.log_model(self.model, "model")

        logger.info("Workflow completed successfully!")
        return all_metrics


def main():
    parser = argparse.ArgumentParser(description="Fit the trial pre-processing recipe and linear model")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML configuration file")
    parser.add_argument("--data", type=str, default=None, help="Path to the trial measurements CSV")
    parser.add_argument("--output", type=str, default="./models", help="Output directory for artifacts")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    config = load_config(args.config)
    np.random.seed(config.get("random_seed", 42))

    data_path = args.data or config['data']['measurements_path']
    workflow = TrialModelWorkflow(config)
    metrics = workflow.run_pipeline(data_path, args.output)

    print(f"Test RMSE: {metrics['test_rmse']:.3f}  R2: {metrics['test_r2']:.3f}")
    print("Artifacts in:", args.output)


if __name__ == "__main__":
    main()
