"""
Experiment tracking utilities using MLflow.
"""

import logging
import time
from typing import Any, Dict, Optional, Union

import mlflow
import numpy as np

logger = logging.getLogger(__name__)


class ExperimentTracker:
    """MLflow experiment tracking wrapper."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize experiment tracker from a config holding an ``mlflow`` section."""
        self.config = config
        mlflow_config = config.get('mlflow', {})
        self.tracking_uri = mlflow_config.get('tracking_uri', 'file:./mlruns')
        self.experiment_name = mlflow_config.get('experiment_name', 'trial_walkthrough')

        mlflow.set_tracking_uri(self.tracking_uri)

        experiment = mlflow.get_experiment_by_name(self.experiment_name)
        if experiment is None:
            mlflow.create_experiment(self.experiment_name)
        elif experiment.lifecycle_stage == "deleted":
            # Deleted experiments keep their name reserved
            self.experiment_name = f"{self.experiment_name}_{int(time.time())}"
            mlflow.create_experiment(self.experiment_name)

        mlflow.set_experiment(self.experiment_name)

    def start_run(self, run_name: Optional[str] = None):
        """Start MLflow run."""
        return mlflow.start_run(run_name=run_name)

    def log_params(self, params: Dict[str, Any], prefix: str = ""):
        """Log a (nested) configuration as dotted string parameters in one batch."""
        flat_params = self._flatten_dict(params, prefix)
        try:
            mlflow.log_params(flat_params)
        except Exception as e:
            logger.warning(f"Failed to log {len(flat_params)} params: {e}")

    def log_metrics(self, metrics: Dict[str, float], step: Optional[int] = None):
        """Log finite numeric metrics; NaN metrics (e.g. r2 on one row) are skipped."""
        finite = {key: float(value) for key, value in metrics.items()
                  if isinstance(value, (int, float, np.number)) and np.isfinite(value)}
        skipped = sorted(set(metrics) - set(finite))
        if skipped:
            logger.info(f"Not logging non-finite metrics: {skipped}")
        try:
            mlflow.log_metrics(finite, step=step)
        except Exception as e:
            logger.warning(f"Failed to log metrics: {e}")

    def log_artifacts(self, local_dir: str, artifact_path: Optional[str] = None):
        """Upload the files of ``local_dir`` (workflow outputs, report figures)."""
        try:
            mlflow.log_artifacts(local_dir, artifact_path=artifact_path)
        except Exception as e:
            logger.warning(f"Failed to log artifacts from {local_dir}: {e}")

    def log_dict(self, dictionary: Dict[str, Any], artifact_file: str):
        """Store a dictionary (metrics, recipe settings) as a YAML or JSON artifact."""
        try:
            mlflow.log_dict(dictionary, artifact_file)
        except Exception as e:
            logger.warning(f"Failed to log {artifact_file}: {e}")

    def log_model(self, model, model_name: str, input_example=None):
        """Log a fitted scikit-learn model."""
        try:
            mlflow.sklearn.log_model(model, name=model_name, input_example=input_example)
        except Exception as e:
            logger.warning(f"Failed to log model: {e}")

    @staticmethod
    def _flatten_dict(d: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
        """``{'recipe': {'dummy': {'one_hot': False}}}`` -> ``{'recipe.dummy.one_hot': 'False'}``."""
        flat = {}
        for key, value in d.items():
            name = f"{prefix}.{key}" if prefix else str(key)
            if isinstance(value, dict):
                flat.update(ExperimentTracker._flatten_dict(value, name))
            else:
                flat[name] = str(value)
        return flat


def setup_experiment_tracking(config: Dict[str, Any]) -> Optional[ExperimentTracker]:
    """Return a tracker when ``mlflow.enabled`` is set, otherwise None."""
    if not config.get('mlflow', {}).get('enabled', False):
        logger.info("Experiment tracking disabled")
        return None
    return ExperimentTracker(config)
