"""Test configuration and fixtures."""

import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def sample_trial_data():
    """Create a small two-arm trial table with a few missing follow-ups."""
    rng = np.random.default_rng(42)

    n_patients = 40
    groups = np.array(['placebo', 'treatment'] * (n_patients // 2))
    baseline = rng.normal(140, 10, size=n_patients).round(1)
    effect = np.where(groups == 'treatment', -5.0, 0.0)
    followup_1 = (baseline + effect + rng.normal(0, 4, size=n_patients)).round(1)
    followup_2 = (followup_1 + effect + rng.normal(0, 4, size=n_patients)).round(1)

    df = pd.DataFrame({
        'patient_id': [f'P{i:04d}' for i in range(1, n_patients + 1)],
        'baseline': baseline,
        'followup_1': followup_1,
        'followup_2': followup_2,
        'group': groups,
    })
    df.loc[[3, 10], 'followup_1'] = np.nan
    df.loc[[5, 17, 22], 'followup_2'] = np.nan
    return df


@pytest.fixture
def sample_demographics():
    """Demographics missing two trial patients and holding two screened-only patients."""
    ids = [f'P{i:04d}' for i in range(1, 41) if i not in (7, 8)] + ['P0041', 'P0042']
    rng = np.random.default_rng(7)
    return pd.DataFrame({
        'patient_id': ids,
        'age': rng.integers(30, 80, size=len(ids)),
        'sex': rng.choice(['F', 'M'], size=len(ids)),
        'site_id': rng.choice(['S01', 'S02', 'S03'], size=len(ids)),
    })


@pytest.fixture
def sample_sites():
    """Site lookup table."""
    return pd.DataFrame({
        'site_id': ['S01', 'S02', 'S03'],
        'site_city': ['Leiden', 'Porto', 'Lyon'],
        'site_country': ['Netherlands', 'Portugal', 'France'],
    })


@pytest.fixture
def temp_directory():
    """Create temporary directory for testing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def trial_csv_files(temp_directory, sample_trial_data, sample_demographics, sample_sites):
    """Write the sample tables to CSV and return their paths."""
    paths = {
        'measurements': temp_directory / 'trial_measurements.csv',
        'demographics': temp_directory / 'trial_demographics.csv',
        'sites': temp_directory / 'trial_sites.csv',
    }
    sample_trial_data.to_csv(paths['measurements'], index=False)
    sample_demographics.to_csv(paths['demographics'], index=False)
    sample_sites.to_csv(paths['sites'], index=False)
    return paths


@pytest.fixture
def sample_config():
    """Sample configuration for testing."""
    from trialwrangle.config import load_config

    config = load_config()
    config['resampling']['bootstrap_times'] = 50
    config['report']['figure_dpi'] = 60
    return config
