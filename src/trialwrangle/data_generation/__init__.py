"""Synthetic trial data generation."""

from .generate_trial_data import TrialDataGenerator, generate_from_config

__all__ = ['TrialDataGenerator', 'generate_from_config']
