"""
Analysis module for country-level TB burden.

Contains correlation, regression, ranking and clustering steps.
"""

from .clustering import (
    BURDEN_LABELS,
    ClusteringResult,
    evaluate_cluster_counts,
    generate_cluster_profiles,
    run_clustering,
)
from .correlation import CorrelationResult, compute_correlation_matrix, run_correlation
from .ranking import RankingResult, run_ranking, top_incidence
from .regression import RegressionResult, run_regression

__all__ = [
    "BURDEN_LABELS",
    "ClusteringResult",
    "CorrelationResult",
    "RankingResult",
    "RegressionResult",
    "compute_correlation_matrix",
    "evaluate_cluster_counts",
    "generate_cluster_profiles",
    "run_clustering",
    "run_correlation",
    "run_ranking",
    "run_regression",
    "top_incidence",
]
