"""
Loading and validation of the trial CSV files.
"""

import logging
import re
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import dask.dataframe as dd
import pandas as pd

from ..config import TrialSchema

logger = logging.getLogger(__name__)


def clean_column_names(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy with snake_case column names ("Follow-up 1" -> "follow_up_1")."""
    def _clean(name: str) -> str:
        name = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', str(name).strip())
        name = re.sub(r'[^0-9a-zA-Z]+', '_', name)
        return name.strip('_').lower()

    return df.rename(columns={col: _clean(col) for col in df.columns})


def read_table(path: Union[str, Path], engine: str = 'pandas') -> pd.DataFrame:
    """
    Read a CSV file into a pandas DataFrame.

    Args:
        path: CSV file path
        engine: 'pandas' or 'dask' (read lazily, then computed)

    Returns:
        Loaded DataFrame
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Data file not found: {p}")

    if engine == 'pandas':
        df = pd.read_csv(p)
    elif engine == 'dask':
        ddf = dd.read_csv(str(p), assume_missing=True)
        logger.info(f"Dask DataFrame partitions: {ddf.npartitions}")
        df = ddf.compute().reset_index(drop=True)
    else:
        raise ValueError(f"Unknown loading engine: {engine}")

    logger.info(f"Loaded {p.name} with shape {df.shape} using {engine}")
    return df


def key_as_string(values: pd.Series) -> pd.Series:
    """Cast a join key to the nullable string dtype; 7, 7.0 and "7" all become "7"."""
    if pd.api.types.is_float_dtype(values) and (values.dropna() % 1 == 0).all():
        values = values.astype('Int64')
    return values.astype('string')


def load_table(path: Union[str, Path],
               key_cols: Sequence[str] = (),
               engine: str = 'pandas') -> pd.DataFrame:
    """
    Read a CSV, clean its column names and cast its key columns to strings.

    Every table that takes part in a join is loaded through here so that
    keys compare equal whether the file stores them as numbers or text.
    Missing keys stay missing.
    """
    df = clean_column_names(read_table(path, engine=engine))

    missing = [col for col in key_cols if col not in df.columns]
    if missing:
        raise ValueError(f"Key columns not found in {path}: {missing}")

    for col in key_cols:
        df[col] = key_as_string(df[col])
    return df


def load_trial_data(path: Union[str, Path],
                    schema: Optional[TrialSchema] = None,
                    engine: str = 'pandas') -> pd.DataFrame:
    """
    Load the trial measurement table.

    Column names are cleaned to snake_case, the patient id becomes a string
    key (see ``load_table``) and measurement columns are coerced to numeric
    (unparseable entries become NaN).

    Args:
        path: CSV file path
        schema: Expected column names
        engine: Reader engine, see ``read_table``

    Returns:
        Measurement DataFrame
    """
    schema = schema or TrialSchema()
    df = load_table(path, engine=engine)

    missing = [col for col in schema.required_cols if col not in df.columns]
    if missing:
        raise ValueError(f"Required columns not found in {path}: {missing}")

    for col in schema.measurement_cols:
        df[col] = pd.to_numeric(df[col], errors='coerce')
    df[schema.id_col] = key_as_string(df[schema.id_col])

    n_missing = int(df[schema.measurement_cols].isnull().sum().sum())
    logger.info(f"Trial data: {df[schema.id_col].nunique()} patients, "
                f"{n_missing} missing measurements")
    return df


class TrialDataValidator:
    """Check a trial table against per-column rules and report the findings."""

    RULE_TYPES = ('range', 'categorical', 'missing_rate', 'unique')

    def __init__(self):
        self.validation_rules: Dict[str, List[Dict]] = {}

    def add_rule(self, feature: str, rule_type: str, **kwargs):
        """Register a rule; ``rule_type`` is one of ``RULE_TYPES``."""
        if rule_type not in self.RULE_TYPES:
            raise ValueError(f"Unknown rule type: {rule_type}")
        self.validation_rules.setdefault(feature, []).append({'type': rule_type, 'params': kwargs})

    @staticmethod
    def _check_range(values: pd.Series, min=None, max=None) -> List[str]:
        findings = []
        if min is not None and (values < min).any():
            findings.append(f"{int((values < min).sum())} values below minimum {min}")
        if max is not None and (values > max).any():
            findings.append(f"{int((values > max).sum())} values above maximum {max}")
        return findings

    @staticmethod
    def _check_categorical(values: pd.Series, allowed_values=()) -> List[str]:
        n_invalid = int((values.notnull() & ~values.isin(list(allowed_values))).sum())
        return [f"{n_invalid} invalid categorical values"] if n_invalid else []

    @staticmethod
    def _check_missing_rate(values: pd.Series, max_rate: float = 0.1) -> List[str]:
        rate = values.isnull().mean()
        return [f"Missing rate {rate:.2%} exceeds {max_rate:.2%}"] if rate > max_rate else []

    @staticmethod
    def _check_unique(values: pd.Series) -> List[str]:
        n_duplicated = int(values.dropna().duplicated().sum())
        return [f"{n_duplicated} duplicated values"] if n_duplicated else []

    def validate(self, df: pd.DataFrame) -> Dict[str, List[str]]:
        """Return ``{column: [finding, ...]}`` for every column that breaks a rule."""
        start_time = time.time()
        violations = {}

        for feature, rules in self.validation_rules.items():
            if feature not in df.columns:
                violations[feature] = ["column missing"]
                continue

            findings = []
            for rule in rules:
                check = getattr(self, f"_check_{rule['type']}")
                findings.extend(check(df[feature], **rule['params']))
            if findings:
                violations[feature] = findings

        elapsed_time = time.time() - start_time
        if violations:
            logger.warning(f"Found data quality issues in {len(violations)} columns: {sorted(violations)}")
        else:
            logger.info(f"Data validation passed in {elapsed_time:.2f} seconds")
        return violations

    def setup_trial_rules(self, schema: Optional[TrialSchema] = None,
                          measurement_range: tuple = (40.0, 260.0)):
        """Setup validation rules for the trial measurement table."""
        schema = schema or TrialSchema()

        # One row per patient
        self.add_rule(schema.id_col, 'unique')
        self.add_rule(schema.id_col, 'missing_rate', max_rate=0.0)

        # Plausible measurement values
        for col in schema.measurement_cols:
            self.add_rule(col, 'range', min=measurement_range[0], max=measurement_range[1])

        # Baseline is required for randomization, follow-ups may be missed
        self.add_rule(schema.baseline_col, 'missing_rate', max_rate=0.0)
        for col in schema.followup_cols:
            self.add_rule(col, 'missing_rate', max_rate=0.25)

        self.add_rule(schema.group_col, 'categorical', allowed_values=schema.groups)
        self.add_rule(schema.group_col, 'missing_rate', max_rate=0.0)


def missing_value_report(df: pd.DataFrame) -> pd.DataFrame:
    """Count and percentage of missing values per column, largest first."""
    counts = df.isnull().sum()
    report = pd.DataFrame({
        'missing_count': counts,
        'missing_pct': (counts / max(len(df), 1) * 100).round(2),
    })
    report = report[report['missing_count'] > 0].sort_values('missing_count', ascending=False)
    report.index.name = 'column'
    return report.reset_index()
