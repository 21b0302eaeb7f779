"""
Synthetic Clinical Trial Data Generator

Generates the small two-arm trial used throughout the walkthrough: one
measurement row per patient (baseline plus two follow-up visits), a
demographics table and a sites table, written as plain CSV files.
"""

import argparse
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import yaml
from faker import Faker

from ..config import DEFAULT_CONFIG, get_schema, load_config

logger = logging.getLogger(__name__)


class TrialDataGenerator:
    """Generate synthetic data for a randomized two-arm clinical trial."""

    def __init__(self, seed: int = 42, missing_value_rates: Optional[Dict[str, float]] = None):
        """Initialize the generator with a random seed and missing value configuration.

        Args:
            seed: Random seed for reproducibility
            missing_value_rates: Dict of follow-up column -> fraction of values set to NaN.
                Default: {'followup_1': 0.05, 'followup_2': 0.10}
        """
        self.seed = seed
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        Faker.seed(seed)

        # Later visits lose more measurements (missed appointments, dropout)
        self.missing_value_rates = missing_value_rates if missing_value_rates is not None else {
            'followup_1': 0.05,
            'followup_2': 0.10,
        }

        self.schema = get_schema(DEFAULT_CONFIG)

    def generate_measurements(self,
                              num_patients: int,
                              groups: Optional[List[str]] = None,
                              treatment_effect: float = 4.0) -> pd.DataFrame:
        """
        Generate the wide measurement table.

        Args:
            num_patients: Number of randomized patients
            groups: Arm labels; the first arm is the control arm
            treatment_effect: Mean reduction per visit in the non-control arms

        Returns:
            DataFrame with id, baseline, follow-up and group columns
        """
        start_time = time.time()
        groups = groups or self.schema.groups
        logger.info(f"Generating measurements for {num_patients} patients in arms {groups}")

        patient_ids = [f"P{i:04d}" for i in range(1, num_patients + 1)]

        # Balanced randomization, shuffled
        arms = np.resize(np.array(groups), num_patients)
        self.rng.shuffle(arms)

        baseline = self.rng.normal(140, 12, size=num_patients).round(1)
        is_treated = (arms != groups[0]).astype(float)

        measurements = {
            self.schema.id_col: patient_ids,
            self.schema.baseline_col: baseline,
        }

        previous = baseline
        for visit_idx, col in enumerate(self.schema.followup_cols, start=1):
            # Small placebo drift plus the arm effect, growing with each visit
            drift = self.rng.normal(-1.0, 6, size=num_patients)
            values = previous + drift - is_treated * treatment_effect
            values = np.round(values, 1)

            rate = self.missing_value_rates.get(col, 0.0)
            if rate > 0:
                missing_mask = self.rng.random(num_patients) < rate
                values = np.where(missing_mask, np.nan, values)

            measurements[col] = values
            # Missing visits do not reset the trajectory
            previous = np.where(np.isnan(values), previous, values)

        measurements[self.schema.group_col] = arms

        df = pd.DataFrame(measurements)
        elapsed_time = time.time() - start_time
        logger.info(f"Generated {len(df)} measurement rows in {elapsed_time:.2f} seconds")
        return df

    def generate_sites(self, num_sites: int) -> pd.DataFrame:
        """Generate the study site lookup table."""
        sites = []
        for i in range(1, num_sites + 1):
            sites.append({
                'site_id': f"S{i:02d}",
                'site_city': self.fake.city(),
                'site_country': self.fake.country(),
            })
        return pd.DataFrame(sites)

    def generate_demographics(self,
                              patient_ids: List[str],
                              num_sites: int = 4,
                              dropout_rate: float = 0.05,
                              extra_screened: int = 6) -> pd.DataFrame:
        """
        Generate demographics for the enrolled patients.

        Some randomized patients have no demographics record (``dropout_rate``)
        and a few screened-but-not-randomized patients are added, so that
        left, right, inner and full joins against the measurements differ.

        Args:
            patient_ids: Randomized patient identifiers
            num_sites: Number of sites patients are spread over
            dropout_rate: Fraction of randomized patients without demographics
            extra_screened: Number of extra patients not present in the measurements

        Returns:
            DataFrame with patient_id, age, sex and site_id
        """
        keep_mask = self.rng.random(len(patient_ids)) >= dropout_rate
        kept_ids = [pid for pid, keep in zip(patient_ids, keep_mask) if keep]

        next_id = len(patient_ids) + 1
        screened_ids = [f"P{next_id + i:04d}" for i in range(extra_screened)]
        all_ids = kept_ids + screened_ids

        n = len(all_ids)
        ages = np.clip(self.rng.normal(58, 11, size=n), 18, 90).astype(int)
        sex = self.rng.choice(['F', 'M'], size=n, p=[0.5, 0.5])
        site_ids = [f"S{i:02d}" for i in self.rng.integers(1, num_sites + 1, size=n)]

        logger.info(f"Generated demographics for {n} patients "
                    f"({len(patient_ids) - len(kept_ids)} randomized without record, "
                    f"{extra_screened} screened only)")

        return pd.DataFrame({
            self.schema.id_col: all_ids,
            'age': ages,
            'sex': sex,
            'site_id': site_ids,
        })

    def generate_dataset(self,
                         num_patients: int = 120,
                         num_sites: int = 4,
                         treatment_effect: float = 4.0,
                         dropout_rate: float = 0.05,
                         extra_screened: int = 6,
                         groups: Optional[List[str]] = None) -> Dict[str, pd.DataFrame]:
        """Generate all three trial tables."""
        measurements = self.generate_measurements(
            num_patients=num_patients,
            groups=groups,
            treatment_effect=treatment_effect,
        )
        demographics = self.generate_demographics(
            measurements[self.schema.id_col].tolist(),
            num_sites=num_sites,
            dropout_rate=dropout_rate,
            extra_screened=extra_screened,
        )
        sites = self.generate_sites(num_sites)
        return {
            'measurements': measurements,
            'demographics': demographics,
            'sites': sites,
        }

    def save_dataset(self, tables: Dict[str, pd.DataFrame], output_dir: str) -> Dict[str, Path]:
        """Write each table as ``trial_<name>.csv`` and a ``data_summary.yaml``."""
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)

        paths = {}
        for name, df in tables.items():
            path = out / f"trial_{name}.csv"
            df.to_csv(path, index=False)
            paths[name] = path
            logger.info(f"Saved {name} ({df.shape[0]} rows) to {path}")

        measurements = tables['measurements']
        summary = {
            'num_patients': int(len(measurements)),
            'arms': {str(k): int(v) for k, v in
                     measurements[self.schema.group_col].value_counts().sort_index().items()},
            'missing_values': {str(k): int(v) for k, v in measurements.isnull().sum().items()},
            'tables': {name: list(df.columns) for name, df in tables.items()},
            'seed': self.seed,
        }
        summary_path = out / "data_summary.yaml"
        with open(summary_path, 'w', encoding='utf-8') as f:
            yaml.dump(summary, f, default_flow_style=False)
        logger.info(f"Summary saved to {summary_path}")

        return paths


def generate_from_config(config: Dict, output_dir: str,
                         num_patients: Optional[int] = None,
                         seed: Optional[int] = None) -> Dict[str, Path]:
    """Generate and save the trial tables described by the ``data_generation`` config section."""
    data_config = {**DEFAULT_CONFIG['data_generation'], **config.get('data_generation', {})}
    missing_config = data_config.get('missing_values', {})
    missing_rates = missing_config.get('rates', {}) if missing_config.get('enabled', True) else {}

    seed = seed if seed is not None else config.get('random_seed', 42)
    generator = TrialDataGenerator(seed=seed, missing_value_rates=missing_rates)
    generator.schema = get_schema(config)

    tables = generator.generate_dataset(
        num_patients=num_patients or data_config['num_patients'],
        num_sites=data_config['num_sites'],
        treatment_effect=data_config['treatment_effect'],
        dropout_rate=data_config['dropout_rate'],
        extra_screened=data_config['extra_screened'],
    )
    return generator.save_dataset(tables, output_dir)


def main():
    """Main function for command-line usage."""
    parser = argparse.ArgumentParser(description="Generate synthetic clinical trial data")
    parser.add_argument("--num_patients", type=int, default=None,
                        help="Number of randomized patients")
    parser.add_argument("--output_dir", type=str, default="./data/raw",
                        help="Output directory for generated CSV files")
    parser.add_argument("--config", type=str, default=None,
                        help="Configuration file")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed (defaults to the config's random_seed)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    config = load_config(args.config)
    generate_from_config(config, args.output_dir, num_patients=args.num_patients, seed=args.seed)


if __name__ == "__main__":
    main()
