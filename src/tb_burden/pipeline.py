"""
End-to-end TB burden analysis.

Usage:
    tb-analysis run

Or from Python:
    from tb_burden.pipeline import run_analysis
    report = run_analysis("TB_Burden_Country.csv")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import plotly.graph_objects as go
import polars as pl
from loguru import logger

from tb_burden.analysis.clustering import ClusteringResult, run_clustering
from tb_burden.analysis.correlation import CorrelationResult, run_correlation
from tb_burden.analysis.ranking import RankingResult, run_ranking
from tb_burden.analysis.regression import RegressionResult, run_regression
from tb_burden.config import DEFAULT_DATA_PATH, DEFAULT_SEED
from tb_burden.extraction.who_tb import load_tb_data


@dataclass
class AnalysisReport:
    """Every result of one analysis run."""

    data: pl.DataFrame
    year: int
    stage_counts: dict[str, int]
    correlation: CorrelationResult
    regression: RegressionResult
    ranking: RankingResult
    clustering: ClusteringResult

    def figures(self) -> dict[str, go.Figure]:
        """All figures keyed by a short name."""
        return {
            "correlation": self.correlation.figure,
            "mortality_vs_incidence": self.regression.figure,
            "mortality_vs_hiv": self.regression.hiv_figure,
            "top_incidence": self.ranking.figure,
            "clusters": self.clustering.figure,
        }


def run_analysis(
    path: Path | str = DEFAULT_DATA_PATH,
    seed: int = DEFAULT_SEED,
) -> AnalysisReport:
    """
    Run the full analysis on a TB burden snapshot.

    Args:
        path: Location of the CSV snapshot.
        seed: Random state for K-Means.

    Returns:
        AnalysisReport with tables, models and figures.

    Raises:
        TBAnalysisError: If any stage fails.
    """
    logger.info("1. Loading TB burden data...")
    dataset = load_tb_data(path)
    df = dataset.data

    logger.info("2. Computing indicator correlations...")
    correlation = run_correlation(df)

    logger.info("3. Fitting mortality models...")
    regression = run_regression(df)

    logger.info("4. Ranking countries by incidence...")
    ranking = run_ranking(df)

    logger.info("5. Clustering countries (k=3)...")
    clustering = run_clustering(df, seed=seed)

    logger.success(f"Analysis of {len(df):,} countries for {dataset.year} complete")

    return AnalysisReport(
        data=df,
        year=dataset.year,
        stage_counts=dataset.stage_counts,
        correlation=correlation,
        regression=regression,
        ranking=ranking,
        clustering=clustering,
    )
