"""
Test suite for utilities and experiment tracking.
"""

import pytest
import pandas as pd
import numpy as np
from unittest.mock import Mock, patch

from trialwrangle.utils.experiment_tracking import ExperimentTracker, setup_experiment_tracking


@pytest.fixture
def tracking_config():
    return {
        'mlflow': {
            'enabled': True,
            'tracking_uri': 'file:./test_mlruns',
            'experiment_name': 'test_experiment'
        }
    }


@pytest.fixture
def mock_mlflow_setup():
    """Patch the MLflow calls made while creating a tracker."""
    with patch('mlflow.set_tracking_uri') as mock_set_uri, \
            patch('mlflow.get_experiment_by_name') as mock_get_exp, \
            patch('mlflow.create_experiment') as mock_create_exp, \
            patch('mlflow.set_experiment') as mock_set_exp:
        mock_get_exp.return_value = None
        yield {
            'set_tracking_uri': mock_set_uri,
            'get_experiment_by_name': mock_get_exp,
            'create_experiment': mock_create_exp,
            'set_experiment': mock_set_exp,
        }


class TestExperimentTracker:
    """Test experiment tracking functionality."""

    def test_init_creates_experiment(self, tracking_config, mock_mlflow_setup):
        """A missing experiment is created and activated."""
        tracker = ExperimentTracker(tracking_config)

        assert tracker.tracking_uri == 'file:./test_mlruns'
        assert tracker.experiment_name == 'test_experiment'
        mock_mlflow_setup['set_tracking_uri'].assert_called_once_with('file:./test_mlruns')
        mock_mlflow_setup['create_experiment'].assert_called_once_with('test_experiment')
        mock_mlflow_setup['set_experiment'].assert_called_once_with('test_experiment')

    def test_init_existing_experiment(self, tracking_config, mock_mlflow_setup):
        """An active experiment is reused."""
        mock_mlflow_setup['get_experiment_by_name'].return_value = Mock(lifecycle_stage='active')

        tracker = ExperimentTracker(tracking_config)

        assert tracker.experiment_name == 'test_experiment'
        mock_mlflow_setup['create_experiment'].assert_not_called()

    def test_init_deleted_experiment(self, tracking_config, mock_mlflow_setup):
        """A deleted experiment name gets a timestamp suffix."""
        mock_mlflow_setup['get_experiment_by_name'].return_value = Mock(lifecycle_stage='deleted')

        tracker = ExperimentTracker(tracking_config)

        assert tracker.experiment_name.startswith('test_experiment_')
        mock_mlflow_setup['create_experiment'].assert_called_once_with(tracker.experiment_name)

    @patch('mlflow.start_run')
    def test_start_run(self, mock_start_run, tracking_config, mock_mlflow_setup):
        """Test starting MLflow run."""
        tracker = ExperimentTracker(tracking_config)
        tracker.start_run("test_run")

        mock_start_run.assert_called_once_with(run_name="test_run")

    @patch('mlflow.log_params')
    def test_log_params(self, mock_log_params, tracking_config, mock_mlflow_setup):
        """Nested parameters are flattened to dotted string parameters in one call."""
        tracker = ExperimentTracker(tracking_config)
        tracker.log_params({'recipe': {'impute_knn': {'neighbors': 5}}, 'random_seed': 42})

        mock_log_params.assert_called_once_with({'recipe.impute_knn.neighbors': '5', 'random_seed': '42'})

    @patch('mlflow.log_metrics')
    def test_log_metrics(self, mock_log_metrics, tracking_config, mock_mlflow_setup):
        """Test logging metrics."""
        tracker = ExperimentTracker(tracking_config)
        tracker.log_metrics({'test_rmse': 4.2, 'test_r2': 0.8, 'test_n': 10}, step=1)

        mock_log_metrics.assert_called_once_with({'test_rmse': 4.2, 'test_r2': 0.8, 'test_n': 10.0}, step=1)

    @patch('mlflow.log_metrics')
    def test_log_metrics_skips_nan(self, mock_log_metrics, tracking_config, mock_mlflow_setup):
        """An undefined r2 (single test row) is left out instead of failing the batch."""
        tracker = ExperimentTracker(tracking_config)
        tracker.log_metrics({'test_rmse': 1.5, 'test_r2': float('nan')})

        mock_log_metrics.assert_called_once_with({'test_rmse': 1.5}, step=None)

    @patch('mlflow.log_metrics')
    def test_log_metrics_failure_is_logged(self, mock_log_metrics, tracking_config, mock_mlflow_setup):
        """Tracking failures do not interrupt the workflow."""
        mock_log_metrics.side_effect = Exception("tracking server unavailable")
        tracker = ExperimentTracker(tracking_config)

        tracker.log_metrics({'test_rmse': 4.2})

        mock_log_metrics.assert_called_once()

    @patch('mlflow.log_artifacts')
    def test_log_artifacts(self, mock_log_artifacts, tracking_config, mock_mlflow_setup):
        tracker = ExperimentTracker(tracking_config)
        tracker.log_artifacts('models', artifact_path='workflow')

        mock_log_artifacts.assert_called_once_with('models', artifact_path='workflow')

    @patch('mlflow.log_dict')
    def test_log_dict(self, mock_log_dict, tracking_config, mock_mlflow_setup):
        tracker = ExperimentTracker(tracking_config)
        tracker.log_dict({'rmse': 1.0}, 'metrics.yaml')

        mock_log_dict.assert_called_once_with({'rmse': 1.0}, 'metrics.yaml')

    def test_flatten_dict(self):
        flat = ExperimentTracker._flatten_dict({'a': {'b': 1, 'c': {'d': [1, 2]}}, 'e': None}, prefix='cfg')

        assert flat == {'cfg.a.b': '1', 'cfg.a.c.d': '[1, 2]', 'cfg.e': 'None'}
        assert ExperimentTracker._flatten_dict({'x': {}}) == {}


class TestSetupExperimentTracking:
    """Test tracker creation from configuration."""

    def test_disabled(self):
        assert setup_experiment_tracking({'mlflow': {'enabled': False}}) is None
        assert setup_experiment_tracking({}) is None

    def test_enabled(self, tracking_config, mock_mlflow_setup):
        tracker = setup_experiment_tracking(tracking_config)
        assert isinstance(tracker, ExperimentTracker)


# Test model utilities
from trialwrangle.utils.model_utils import ModelComparator, RegressionEvaluator


class TestRegressionEvaluator:
    """Test regression metrics."""

    def test_calculate_metrics(self):
        evaluator = RegressionEvaluator()
        y_true = np.array([1.0, 2.0, 3.0, 4.0])
        y_pred = np.array([1.0, 2.0, 3.0, 6.0])

        metrics = evaluator.calculate_metrics(y_true, y_pred)

        assert metrics['rmse'] == pytest.approx(1.0)
        assert metrics['mae'] == pytest.approx(0.5)
        assert metrics['bias'] == pytest.approx(0.5)
        assert metrics['r2'] == pytest.approx(1 - 4.0 / 5.0)
        assert metrics['n'] == 4

    def test_perfect_predictions(self):
        metrics = RegressionEvaluator().calculate_metrics([1.0, 2.0, 3.0], [1.0, 2.0, 3.0])
        assert metrics['rmse'] == 0.0
        assert metrics['r2'] == pytest.approx(1.0)

    def test_single_observation(self):
        metrics = RegressionEvaluator().calculate_metrics([1.0], [2.0])
        assert np.isnan(metrics['r2'])
        assert metrics['rmse'] == pytest.approx(1.0)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            RegressionEvaluator().calculate_metrics([1.0, 2.0], [1.0])

    def test_residual_summary(self):
        summary = RegressionEvaluator().residual_summary([1.0, 2.0, 3.0], [1.0, 1.0, 1.0])
        assert summary.index.tolist() == ['min', 'q1', 'median', 'q3', 'max']
        assert summary.loc['max', 'residual'] == pytest.approx(2.0)
        assert summary.loc['median', 'residual'] == pytest.approx(1.0)


class TestModelComparator:
    """Test model comparison."""

    def test_compare_models(self):
        comparator = ModelComparator()
        y_true = np.array([1.0, 2.0, 3.0, 4.0])
        comparator.add_model('null_model', y_true, np.full(4, 2.5))
        comparator.add_model('linear_regression', y_true, y_true + 0.1)

        comparison = comparator.compare_models()

        assert comparison['model'].tolist() == ['linear_regression', 'null_model']
        assert comparator.get_best_model() == 'linear_regression'
        assert comparator.get_best_model('r2') == 'linear_regression'

    def test_empty(self):
        comparator = ModelComparator()
        assert comparator.compare_models().empty
        assert comparator.get_best_model() is None

    def test_unknown_metric(self):
        comparator = ModelComparator()
        comparator.add_model('m', [1.0, 2.0], [1.0, 2.0])
        assert comparator.get_best_model('auc') is None


if __name__ == "__main__":
    pytest.main([__file__])
