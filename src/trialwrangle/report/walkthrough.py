"""
Walkthrough Report

Runs the data-wrangling walkthrough on the trial CSV files from top to
bottom and renders the results as a static Markdown document with table
previews and figures.
"""

import argparse
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ..analysis.resampling import bootstrap_statistic, group_mean_difference, percentile_interval
from ..analysis.statistics import compare_groups, describe_by_group, paired_change_test
from ..config import get_schema, load_config
from ..data_generation.generate_trial_data import generate_from_config
from ..pipeline.workflow import TrialModelWorkflow
from ..wrangling.joins import join_summary, join_tables
from ..wrangling.loading import TrialDataValidator, load_table, load_trial_data, missing_value_report
from ..wrangling.reshape import pivot_longer, pivot_wider
from ..wrangling.verbs import (
    add_change_from_baseline,
    arrange,
    count_by,
    filter_rows,
    select_columns,
    summarize,
)
from .plots import plot_bootstrap_distribution, plot_change_distribution, plot_group_trajectories

logger = logging.getLogger(__name__)


@dataclass
class ReportSection:
    title: str
    text: str = ''
    table: Optional[pd.DataFrame] = None
    figure: Optional[Path] = None


class WalkthroughReport:
    """Sequential walkthrough over the trial tables, rendered as Markdown."""

    def __init__(self, config: Dict[str, Any], output_dir: Optional[str] = None):
        self.config = config
        self.schema = get_schema(config)
        report_cfg = config.get('report', {})
        self.preview_rows = report_cfg.get('preview_rows', 6)
        self.dpi = report_cfg.get('figure_dpi', 120)
        self.output_dir = Path(output_dir or report_cfg.get('output_dir', './reports'))
        self.figure_dir = self.output_dir / "figures"
        self.seed = config.get('random_seed', 42)
        self.sections: List[ReportSection] = []
        self.results: Dict[str, Any] = {}

    def add_section(self, title: str, text: str = '', table: Optional[pd.DataFrame] = None,
                    figure: Optional[Path] = None, preview: bool = True):
        if table is not None and preview:
            table = table.head(self.preview_rows)
        self.sections.append(ReportSection(title, text, table, figure))

    # ---------- Sections ----------
    def _load(self, measurements_path: str) -> pd.DataFrame:
        engine = self.config.get('data', {}).get('engine', 'pandas')
        df = load_trial_data(measurements_path, schema=self.schema, engine=engine)
        self.add_section("Data", f"{len(df)} patients, {df.shape[1]} columns.", df)

        missing = missing_value_report(df)
        self.add_section("Missing values", "Missing measurements per column.", missing, preview=False)

        validator = TrialDataValidator()
        validator.setup_trial_rules(self.schema)
        violations = validator.validate(df)
        text = "No data quality issues." if not violations else "\n".join(
            f"- `{col}`: {'; '.join(msgs)}" for col, msgs in violations.items()
        )
        self.add_section("Validation", text)
        self.results['violations'] = violations
        return df

    def _select_filter_arrange(self, df: pd.DataFrame):
        s = self.schema
        by_name = select_columns(df, [s.id_col, s.group_col])
        self.add_section("Select by name", f"`{s.id_col}` and `{s.group_col}`.", by_name)

        followups = select_columns(df, starts_with='followup', columns=[s.id_col])
        self.add_section("Select by pattern", "Identifier plus columns starting with `followup`.", followups)

        measurement_pattern = '|'.join(s.measurement_cols)
        measurements = select_columns(df, matches=f'^({measurement_pattern})$')
        self.add_section("Select by regular expression", f"Columns matching `^({measurement_pattern})$`.",
                         measurements)

        treated_arm = s.groups[-1]
        median_baseline = float(df[s.baseline_col].median())
        query = f"`{s.group_col}` == {treated_arm!r} and `{s.baseline_col}` > {median_baseline}"
        filtered = filter_rows(df, query)
        self.add_section("Filter rows",
                         f"{len(filtered)} `{treated_arm}` patients with baseline above "
                         f"the median ({median_baseline:.1f}).", filtered)

        complete = filter_rows(df, lambda d: d[s.followup_cols[-1]].notna())
        self.add_section("Filter complete follow-up",
                         f"{len(complete)} of {len(df)} patients have `{s.followup_cols[-1]}`.",
                         complete)

        arranged = arrange(df, [s.group_col, s.baseline_col], descending=[False, True])
        self.add_section("Arrange", f"Sorted by `{s.group_col}`, then `{s.baseline_col}` descending.",
                         arranged)

    def _mutate_summarize(self, df: pd.DataFrame) -> pd.DataFrame:
        s = self.schema
        changed = add_change_from_baseline(df, s, percent=True)
        change_cols = [f'change_{col}' for col in s.followup_cols]
        self.add_section("Mutate", "Change from baseline at each follow-up.",
                         select_columns(changed, [s.id_col, s.group_col] + change_cols))

        counts = count_by(df, s.group_col)
        self.add_section("Count", "Patients per arm.", counts, preview=False)

        aggregations = {
            f'mean_{col}': (col, 'mean') for col in s.measurement_cols
        }
        aggregations['n'] = (s.id_col, 'count')
        per_arm = summarize(df, group_by=s.group_col, **aggregations)
        self.add_section("Summarize by arm", "Mean measurement per visit and arm.", per_arm, preview=False)
        self.results['summary_by_arm'] = per_arm
        return changed

    def _reshape(self, df: pd.DataFrame):
        s = self.schema
        wide = df[[s.id_col, s.group_col] + s.measurement_cols]
        long_df = pivot_longer(wide, cols=s.measurement_cols, names_to='visit', values_to='value',
                               id_cols=[s.id_col, s.group_col])
        self.add_section("Pivot longer", f"{wide.shape} -> {long_df.shape}: one row per patient and visit.",
                         long_df)

        back = pivot_wider(long_df, names_from='visit', values_from='value', id_cols=[s.id_col, s.group_col])
        self.add_section("Pivot wider",
                         f"Back to {back.shape}; the original table was {wide.shape}.", back)

        trajectory = describe_by_group(df, s.measurement_cols, s.group_col)
        figure = plot_group_trajectories(trajectory, self.figure_dir / "trajectories.png",
                                         group_col=s.group_col, visit_order=s.measurement_cols, dpi=self.dpi)
        self.add_section("Trajectories", "Mean ± SE per visit and arm.", trajectory, figure, preview=False)

        visit_means = summarize(long_df, group_by=[s.group_col, 'visit'], mean=('value', 'mean'))
        by_visit = pivot_wider(visit_means, names_from=s.group_col, values_from='mean', id_cols='visit')
        self.add_section("Arm means per visit", "Grouped means spread one column per arm.", by_visit,
                         preview=False)

    def _joins(self, df: pd.DataFrame, demographics: pd.DataFrame, sites: Optional[pd.DataFrame]):
        s = self.schema
        keys = join_summary(df, demographics, s.id_col)
        rows = []
        for how in ('left', 'right', 'inner', 'full', 'semi', 'anti'):
            joined = join_tables(df, demographics, by=s.id_col, how=how)
            rows.append({'join': how, 'rows': len(joined), 'columns': joined.shape[1]})
        join_counts = pd.DataFrame(rows)
        self.add_section("Joins",
                         f"Measurements ({len(df)} rows) with demographics ({len(demographics)} rows): "
                         f"{keys['matched']} matched, {keys['left_only']} only in measurements, "
                         f"{keys['right_only']} only in demographics.",
                         join_counts, preview=False)

        enriched = join_tables(df, demographics, by=s.id_col, how='left')
        if sites is not None:
            enriched = join_tables(enriched, sites, by='site_id', how='left')
        self.add_section("Left join", "Every measurement row is kept.", enriched)

        no_demographics = join_tables(df, demographics, by=s.id_col, how='anti')
        self.add_section("Anti join", "Randomized patients without a demographics record.",
                         no_demographics, preview=False)
        self.results['joins'] = join_counts

    def _compare(self, changed: pd.DataFrame):
        s = self.schema
        reference, comparison = s.groups[0], s.groups[-1]
        outcome = f'change_{s.followup_cols[-1]}'

        test = compare_groups(changed, outcome, s.group_col, groups=[reference, comparison])
        paired = paired_change_test(changed, s.baseline_col, s.followup_cols[-1])
        table = pd.DataFrame([
            {'test': f'Welch t-test, {outcome}', **{k: test[k] for k in ('mean_difference', 't_statistic', 'p_value')}},
            {'test': f'Paired t-test, {s.baseline_col} -> {s.followup_cols[-1]}',
             'mean_difference': paired['mean_change'], 't_statistic': paired['t_statistic'],
             'p_value': paired['p_value']},
        ])
        figure = plot_change_distribution(changed, outcome, self.figure_dir / "change_by_arm.png",
                                          group_col=s.group_col, dpi=self.dpi)
        self.add_section("Arm comparison", f"{comparison} minus {reference}.", table, figure, preview=False)
        self.results['comparison'] = test

        resampling_cfg = self.config.get('resampling', {})
        statistic = group_mean_difference(outcome, s.group_col, reference, comparison)
        estimates = bootstrap_statistic(changed.dropna(subset=[outcome]), statistic,
                                        times=resampling_cfg.get('bootstrap_times', 200), seed=self.seed)
        interval = percentile_interval(estimates, alpha=resampling_cfg.get('alpha', 0.05))
        figure = plot_bootstrap_distribution(estimates, interval, self.figure_dir / "bootstrap.png",
                                             label=f"{outcome}: {comparison} - {reference}", dpi=self.dpi)
        level = int(round((1 - resampling_cfg.get('alpha', 0.05)) * 100))
        self.add_section("Bootstrap",
                         f"{len(estimates)} resamples; mean difference {interval[1]:.2f}, "
                         f"{level}% percentile interval ({interval[0]:.2f}, {interval[2]:.2f}).",
                         figure=figure)
        self.results['bootstrap_interval'] = interval

    def _model(self, df: pd.DataFrame):
        workflow = TrialModelWorkflow({**self.config, 'mlflow': {'enabled': False}})
        prepared = workflow.prepare_data(df)
        training, testing = workflow.split_data(prepared)
        train_metrics = workflow.train_model(training)
        test_metrics = workflow.evaluate_model(testing)

        recipe = workflow.recipe
        self.add_section("Recipe steps", "Steps fit on the training split only.", recipe.tidy(), preview=False)
        self.add_section("Baked test data",
                         "Test rows after imputation, normalization and dummy encoding with training "
                         "statistics.", recipe.bake(testing))
        self.add_section("Model coefficients", f"Linear model of `{workflow.outcome}`.",
                         workflow.coefficients(), preview=False)
        self.add_section("Model comparison", "Held-out metrics against the mean-only model.",
                         workflow.comparator.compare_models(), preview=False)
        self.results['model_metrics'] = {**train_metrics, **test_metrics}

    # ---------- Orchestration ----------
    def run(self, measurements_path: str,
            demographics_path: Optional[str] = None,
            sites_path: Optional[str] = None) -> 'WalkthroughReport':
        start_time = time.time()
        logger.info(f"Running walkthrough on {measurements_path}")

        df = self._load(measurements_path)
        self._select_filter_arrange(df)
        changed = self._mutate_summarize(df)
        self._reshape(df)

        if demographics_path:
            engine = self.config.get('data', {}).get('engine', 'pandas')
            site_key = ['site_id'] if sites_path else []
            demographics = load_table(demographics_path, key_cols=[self.schema.id_col] + site_key, engine=engine)
            sites = load_table(sites_path, key_cols=site_key, engine=engine) if sites_path else None
            self._joins(df, demographics, sites)

        self._compare(changed)
        self._model(df)

        elapsed_time = time.time() - start_time
        logger.info(f"Walkthrough finished with {len(self.sections)} sections in {elapsed_time:.2f} seconds")
        return self

    def render(self) -> str:
        lines = ["# Clinical trial data-wrangling walkthrough", ""]
        for section in self.sections:
            lines += [f"## {section.title}", ""]
            if section.text:
                lines += [section.text, ""]
            if section.table is not None:
                lines += ["```", section.table.to_string(index=False, float_format=lambda v: f"{v:.3f}"),
                          "```", ""]
            if section.figure is not None:
                rel = section.figure.relative_to(self.output_dir)
                lines += [f"![{section.title}]({rel.as_posix()})", ""]
        return "\n".join(lines)

    def write(self) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / "report.md"
        path.write_text(self.render(), encoding="utf-8")
        logger.info(f"Report written to {path}")
        return path


def main():
    parser = argparse.ArgumentParser(description="Render the clinical trial data-wrangling walkthrough")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML configuration file")
    parser.add_argument("--data", type=str, default=None, help="Trial measurements CSV")
    parser.add_argument("--demographics", type=str, default=None, help="Demographics CSV (enables joins)")
    parser.add_argument("--sites", type=str, default=None, help="Sites CSV")
    parser.add_argument("--output", type=str, default=None, help="Report output directory")
    parser.add_argument("--generate", action="store_true",
                        help="Generate synthetic trial data into <output>/data first")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    config = load_config(args.config)
    np.random.seed(config.get("random_seed", 42))
    report = WalkthroughReport(config, output_dir=args.output)

    data_cfg = config['data']
    measurements_path = args.data or data_cfg['measurements_path']
    demographics_path = args.demographics or data_cfg.get('demographics_path')
    sites_path = args.sites or data_cfg.get('sites_path')

    if args.generate:
        paths = generate_from_config(config, str(report.output_dir / "data"))
        measurements_path = str(paths['measurements'])
        demographics_path = str(paths['demographics'])
        sites_path = str(paths['sites'])

    if demographics_path and not Path(demographics_path).exists():
        logger.warning(f"Demographics file {demographics_path} not found, skipping joins")
        demographics_path = None
    if sites_path and not Path(sites_path).exists():
        sites_path = None

    report.run(measurements_path, demographics_path, sites_path)
    path = report.write()
    print("Report written to:", path)


if __name__ == "__main__":
    main()
