"""
Model utilities for regression evaluation and comparison.
"""

import logging
from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

logger = logging.getLogger(__name__)


class RegressionEvaluator:
    """Evaluate predictions of a continuous outcome."""

    def calculate_metrics(self, y_true: np.ndarray, y_pred: np.ndarray) -> Dict[str, float]:
        """
        Calculate evaluation metrics.

        Args:
            y_true: Observed outcome
            y_pred: Predicted outcome

        Returns:
            Dictionary with rmse, mae, r2, bias (mean residual) and n
        """
        y_true = np.asarray(y_true, dtype=float)
        y_pred = np.asarray(y_pred, dtype=float)
        if y_true.shape != y_pred.shape:
            raise ValueError(f"Shape mismatch: {y_true.shape} vs {y_pred.shape}")

        metrics = {
            'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
            'mae': float(mean_absolute_error(y_true, y_pred)),
            'r2': float(r2_score(y_true, y_pred)) if len(y_true) > 1 else float('nan'),
            'bias': float(np.mean(y_pred - y_true)),
            'n': int(len(y_true)),
        }
        return metrics

    def residual_summary(self, y_true: np.ndarray, y_pred: np.ndarray) -> pd.DataFrame:
        """Quantiles of the residuals (observed - predicted)."""
        residuals = pd.Series(np.asarray(y_true, dtype=float) - np.asarray(y_pred, dtype=float))
        summary = residuals.quantile([0.0, 0.25, 0.5, 0.75, 1.0])
        summary.index = ['min', 'q1', 'median', 'q3', 'max']
        return summary.rename('residual').to_frame()


class ModelComparator:
    """Compare multiple models."""

    def __init__(self):
        """Initialize comparator."""
        self.results = {}

    def add_model(self, name: str, y_true: np.ndarray, y_pred: np.ndarray):
        """Add model results for comparison."""
        evaluator = RegressionEvaluator()
        self.results[name] = evaluator.calculate_metrics(y_true, y_pred)

    def compare_models(self) -> pd.DataFrame:
        """Create comparison table, best (lowest rmse) first."""
        if not self.results:
            return pd.DataFrame()

        comparison_df = pd.DataFrame(self.results).T
        comparison_df.index.name = 'model'
        return comparison_df.sort_values('rmse').reset_index()

    def get_best_model(self, metric: str = 'rmse') -> Optional[str]:
        """Get name of best performing model (lowest error, or highest r2)."""
        if not self.results:
            return None

        scores = {name: metrics[metric] for name, metrics in self.results.items() if metric in metrics}
        if not scores:
            return None
        if metric == 'r2':
            return max(scores, key=scores.get)
        return min(scores, key=scores.get)
