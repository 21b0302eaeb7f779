"""
Pre-processing steps: k-nearest-neighbor imputation, normalization and
dummy encoding. Each step is fit on training data only and then applied
unchanged to any new data.
"""

import logging
import time
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.impute import KNNImputer, SimpleImputer
from sklearn.preprocessing import MinMaxScaler, OneHotEncoder, StandardScaler

logger = logging.getLogger(__name__)

ColumnSelector = Union[str, Sequence[str]]

SELECTORS = ('all_predictors', 'all_numeric_predictors', 'all_nominal_predictors')
NOMINAL_DTYPES = ['object', 'category', 'string', 'bool']


def resolve_columns(X: pd.DataFrame,
                    columns: ColumnSelector,
                    exclude: Optional[Sequence[str]] = None) -> List[str]:
    """
    Turn a column selector into concrete column names.

    Args:
        X: Frame the step is fit on
        columns: A selector name from ``SELECTORS`` or explicit column names
        exclude: Columns that are never predictors (outcome, identifiers)

    Returns:
        Column names in frame order
    """
    exclude = set(exclude or [])
    candidates = [col for col in X.columns if col not in exclude]

    if isinstance(columns, str) and columns in SELECTORS:
        if columns == 'all_predictors':
            return candidates
        if columns == 'all_numeric_predictors':
            numeric = set(X.select_dtypes(include=[np.number]).columns)
            return [col for col in candidates if col in numeric]
        nominal = set(X.select_dtypes(include=NOMINAL_DTYPES).columns)
        return [col for col in candidates if col in nominal]

    names = [columns] if isinstance(columns, str) else list(columns)
    missing = [col for col in names if col not in X.columns]
    if missing:
        raise KeyError(f"Columns not found: {missing}")
    return names


class KNNImputationStep(BaseEstimator, TransformerMixin):
    """Impute missing values from the k nearest training rows."""

    def __init__(self,
                 columns: ColumnSelector = 'all_predictors',
                 neighbors: int = 5,
                 exclude: Optional[Sequence[str]] = None):
        """
        Initialize the imputation step.

        Args:
            columns: Columns to impute (selector or names)
            neighbors: Number of neighbors averaged for each missing value
            exclude: Columns never treated as predictors
        """
        self.columns = columns
        self.neighbors = neighbors
        self.exclude = exclude
        self.numeric_features_ = []
        self.categorical_features_ = []
        self.scaler_ = None
        self.imputer_ = None
        self.categorical_imputer_ = None

    def fit(self, X: pd.DataFrame, y=None):
        """Fit the imputer on the training rows."""
        start_time = time.time()
        logger.info(f"Fitting KNN imputation step with {self.neighbors} neighbors...")

        selected = resolve_columns(X, self.columns, self.exclude)
        numeric = set(X.select_dtypes(include=[np.number]).columns)
        self.numeric_features_ = [col for col in selected if col in numeric]
        self.categorical_features_ = [col for col in selected if col not in numeric]

        # Distances are computed on standardized values so no column dominates
        if self.numeric_features_:
            values = X[self.numeric_features_].to_numpy(dtype=float)
            self.scaler_ = StandardScaler().fit(values)
            self.imputer_ = KNNImputer(n_neighbors=self.neighbors, keep_empty_features=True)
            self.imputer_.fit(self.scaler_.transform(values))

        # Nominal columns fall back to the most frequent training level
        if self.categorical_features_:
            self.categorical_imputer_ = SimpleImputer(strategy='most_frequent', keep_empty_features=True)
            self.categorical_imputer_.fit(
                X[self.categorical_features_].astype(object).replace({None: np.nan})
            )

        elapsed_time = time.time() - start_time
        logger.info(f"Fitted KNN imputation for {len(self.numeric_features_)} numeric "
                    f"and {len(self.categorical_features_)} nominal columns in {elapsed_time:.2f} seconds")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Fill missing values in the fitted columns."""
        X_transformed = X.copy()

        if self.numeric_features_ and self.imputer_ is not None:
            values = X_transformed[self.numeric_features_].to_numpy(dtype=float)
            n_missing = int(np.isnan(values).sum())
            imputed = self.scaler_.inverse_transform(
                self.imputer_.transform(self.scaler_.transform(values))
            )
            X_transformed[self.numeric_features_] = imputed
            logger.info(f"KNN imputed {n_missing} numeric values")

        if self.categorical_features_ and self.categorical_imputer_ is not None:
            categorical = X_transformed[self.categorical_features_].astype(object).replace({None: np.nan})
            X_transformed[self.categorical_features_] = self.categorical_imputer_.transform(categorical)

        return X_transformed

    def get_feature_names_out(self, input_features=None):
        return self.numeric_features_ + self.categorical_features_


class NormalizationStep(BaseEstimator, TransformerMixin):
    """Center and scale numeric columns with training statistics."""

    def __init__(self,
                 columns: ColumnSelector = 'all_numeric_predictors',
                 method: str = 'standard',
                 exclude: Optional[Sequence[str]] = None):
        """
        Initialize scaler.

        Args:
            columns: Columns to scale (selector or names)
            method: 'standard' (mean 0, sd 1) or 'range' (0 to 1)
            exclude: Columns never treated as predictors
        """
        self.columns = columns
        self.method = method
        self.exclude = exclude
        self.scaler_ = None
        self.numeric_features_ = []

    def fit(self, X: pd.DataFrame, y=None):
        """Fit the scaler."""
        start_time = time.time()
        logger.info(f"Fitting normalization step with method: {self.method}")

        selected = resolve_columns(X, self.columns, self.exclude)
        numeric = set(X.select_dtypes(include=[np.number]).columns)
        self.numeric_features_ = [col for col in selected if col in numeric]

        if self.method == 'standard':
            self.scaler_ = StandardScaler()
        elif self.method == 'range':
            self.scaler_ = MinMaxScaler()
        else:
            raise ValueError(f"Unknown scaling method: {self.method}")

        if self.numeric_features_:
            self.scaler_.fit(X[self.numeric_features_])

        elapsed_time = time.time() - start_time
        logger.info(f"Fitted scaler for {len(self.numeric_features_)} numeric columns in {elapsed_time:.2f} seconds")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Transform by scaling numeric columns."""
        X_transformed = X.copy()

        if self.numeric_features_ and self.scaler_ is not None:
            X_transformed[self.numeric_features_] = self.scaler_.transform(X_transformed[self.numeric_features_])

        return X_transformed

    def get_feature_names_out(self, input_features=None):
        return self.numeric_features_


class DummyEncodingStep(BaseEstimator, TransformerMixin):
    """Replace nominal columns by indicator columns named ``<column>_<level>``."""

    def __init__(self,
                 columns: ColumnSelector = 'all_nominal_predictors',
                 one_hot: bool = False,
                 exclude: Optional[Sequence[str]] = None):
        """
        Initialize the encoder.

        Args:
            columns: Columns to encode (selector or names)
            one_hot: Keep an indicator for every level; by default the first
                (reference) level is dropped
            exclude: Columns never treated as predictors
        """
        self.columns = columns
        self.one_hot = one_hot
        self.exclude = exclude
        self.encoder_ = None
        self.categorical_features_ = []
        self.dummy_columns_ = []

    @staticmethod
    def _levels(X: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
        # Missing levels become their own "unknown" level
        return X[columns].astype(object).where(X[columns].notnull(), 'unknown').astype(str)

    def fit(self, X: pd.DataFrame, y=None):
        """Learn the levels of each nominal column."""
        start_time = time.time()
        logger.info(f"Fitting dummy encoding step (one_hot={self.one_hot})")

        self.categorical_features_ = resolve_columns(X, self.columns, self.exclude)

        if self.categorical_features_:
            self.encoder_ = OneHotEncoder(
                drop=None if self.one_hot else 'first',
                handle_unknown='ignore',
                sparse_output=False,
            )
            self.encoder_.fit(self._levels(X, self.categorical_features_))
            self.dummy_columns_ = list(self.encoder_.get_feature_names_out(self.categorical_features_))

        elapsed_time = time.time() - start_time
        logger.info(f"Fitted dummy encoding for {len(self.categorical_features_)} columns "
                    f"({len(self.dummy_columns_)} indicators) in {elapsed_time:.2f} seconds")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Encode nominal columns; unseen levels get all-zero indicators."""
        if not self.categorical_features_ or self.encoder_ is None:
            return X.copy()

        encoded = self.encoder_.transform(self._levels(X, self.categorical_features_))
        dummies = pd.DataFrame(encoded, columns=self.dummy_columns_, index=X.index).astype(int)
        return pd.concat([X.drop(columns=self.categorical_features_), dummies], axis=1)

    def get_feature_names_out(self, input_features=None):
        return self.dummy_columns_
