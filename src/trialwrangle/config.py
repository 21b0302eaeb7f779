"""
Configuration loading for the trial walkthrough and modeling workflow.
"""

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'random_seed': 42,
    'data': {
        'measurements_path': './data/raw/trial_measurements.csv',
        'demographics_path': './data/raw/trial_demographics.csv',
        'sites_path': './data/raw/trial_sites.csv',
        'engine': 'pandas',
    },
    'schema': {
        'id_col': 'patient_id',
        'baseline_col': 'baseline',
        'followup_cols': ['followup_1', 'followup_2'],
        'group_col': 'group',
        'groups': ['placebo', 'treatment'],
    },
    'data_generation': {
        'num_patients': 120,
        'num_sites': 4,
        'treatment_effect': 4.0,
        'dropout_rate': 0.05,
        'extra_screened': 6,
        'missing_values': {
            'enabled': True,
            'rates': {'followup_1': 0.05, 'followup_2': 0.10},
        },
    },
    'recipe': {
        'outcome': 'followup_2',
        'predictors': ['baseline', 'followup_1', 'group'],
        'impute_knn': {'enabled': True, 'neighbors': 5},
        'normalize': {'enabled': True},
        'dummy': {'enabled': True, 'one_hot': False},
    },
    'model': {
        'algorithm': 'linear_regression',
        'fit_intercept': True,
    },
    'resampling': {
        'train_prop': 0.75,
        'stratify': True,
        'bootstrap_times': 200,
        'alpha': 0.05,
    },
    'report': {
        'output_dir': './reports',
        'preview_rows': 6,
        'figure_dpi': 120,
    },
    'mlflow': {
        'enabled': False,
        'experiment_name': 'trial_walkthrough',
        'tracking_uri': 'file:./mlruns',
    },
}


@dataclass
class TrialSchema:
    """Column names of the trial measurement table."""
    id_col: str = 'patient_id'
    baseline_col: str = 'baseline'
    followup_cols: List[str] = field(default_factory=lambda: ['followup_1', 'followup_2'])
    group_col: str = 'group'
    groups: List[str] = field(default_factory=lambda: ['placebo', 'treatment'])

    @property
    def measurement_cols(self) -> List[str]:
        return [self.baseline_col] + list(self.followup_cols)

    @property
    def required_cols(self) -> List[str]:
        return [self.id_col] + self.measurement_cols + [self.group_col]


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load a YAML configuration file on top of the defaults.

    Args:
        config_path: Path to the YAML file, or None for the defaults only

    Returns:
        Merged configuration dictionary
    """
    if config_path is None:
        return copy.deepcopy(DEFAULT_CONFIG)

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        user_config = yaml.safe_load(f) or {}

    logger.info(f"Loaded configuration from {path}")
    return _deep_merge(DEFAULT_CONFIG, user_config)


def get_schema(config: Dict[str, Any]) -> TrialSchema:
    """Build the column schema from the ``schema`` section of a config."""
    schema_cfg = {**DEFAULT_CONFIG['schema'], **config.get('schema', {})}
    return TrialSchema(
        id_col=schema_cfg['id_col'],
        baseline_col=schema_cfg['baseline_col'],
        followup_cols=list(schema_cfg['followup_cols']),
        group_col=schema_cfg['group_col'],
        groups=list(schema_cfg['groups']),
    )
