"""
Country clustering by TB burden.

Implements K-Means clustering to group countries into burden tiers based
on the five standardized burden indicators.

Usage:
    tb-analysis run          # clusters as part of the full analysis
    tb-analysis clusters     # inertia and silhouette by k

Or from Python:
    from tb_burden.analysis.clustering import run_clustering
    result = run_clustering(df)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import plotly.graph_objects as go
import polars as pl
from loguru import logger
from sklearn.cluster import KMeans
from sklearn.metrics import silhouette_score
from sklearn.preprocessing import StandardScaler

from tb_burden.charts import cluster_scatter
from tb_burden.config import DEFAULT_SEED
from tb_burden.exceptions import ModelFitError
from tb_burden.extraction.who_tb import INDICATORS

N_CLUSTERS = 3
N_INIT = 25

# Burden labels ordered from highest to lowest mean incidence
BURDEN_LABELS = ["High Burden", "Moderate Burden", "Low Burden"]


@dataclass
class ClusteringResult:
    """Cluster assignments, profiles and diagnostics."""

    data: pl.DataFrame
    profiles: pl.DataFrame
    inertia: float
    silhouette: float | None
    figure: go.Figure


def prepare_features(df: pl.DataFrame) -> np.ndarray:
    """
    Standardize the burden indicators (z-score per column).

    Args:
        df: Cleaned country records.

    Returns:
        Scaled feature matrix, one row per country.
    """
    X = df.select(INDICATORS).to_numpy().astype(float)
    return StandardScaler().fit_transform(X)


def _silhouette(X: np.ndarray, labels: np.ndarray) -> float | None:
    n_labels = len(np.unique(labels))
    if n_labels < 2 or n_labels >= len(X):
        return None
    return float(silhouette_score(X, labels))


def run_kmeans(
    X: np.ndarray,
    n_clusters: int = N_CLUSTERS,
    seed: int = DEFAULT_SEED,
    n_init: int = N_INIT,
) -> Tuple[np.ndarray, KMeans]:
    """
    Run K-Means keeping the best of ``n_init`` random starts.

    Args:
        X: Scaled feature matrix.
        n_clusters: Number of clusters.
        seed: Random state for the initial centroids.
        n_init: Number of random starts.

    Returns:
        Tuple of (cluster ids starting at 1, fitted KMeans model).

    Raises:
        ModelFitError: If there are fewer rows than clusters.
    """
    if len(X) < n_clusters:
        raise ModelFitError(
            f"K-Means needs at least {n_clusters} rows, got {len(X)}"
        )

    kmeans = KMeans(
        n_clusters=n_clusters,
        n_init=n_init,
        random_state=seed,
        max_iter=300,
    )
    labels = kmeans.fit_predict(X)

    return labels + 1, kmeans


def evaluate_cluster_counts(
    X: np.ndarray,
    max_k: int = 8,
    seed: int = DEFAULT_SEED,
) -> pl.DataFrame:
    """
    Inertia and silhouette score for k = 2..max_k.

    Values of k that need more rows than available are skipped.
    """
    rows = []
    for k in range(2, min(max_k, len(X) - 1) + 1):
        labels, kmeans = run_kmeans(X, n_clusters=k, seed=seed)
        rows.append({"k": k, "inertia": float(kmeans.inertia_), "silhouette": _silhouette(X, labels)})

    return pl.DataFrame(rows, schema={"k": pl.Int64, "inertia": pl.Float64, "silhouette": pl.Float64})


def generate_cluster_profiles(df: pl.DataFrame) -> pl.DataFrame:
    """
    Summary statistics for each cluster.

    Args:
        df: DataFrame with a ``cluster`` column.

    Returns:
        One row per cluster, highest mean incidence first.
    """
    return (
        df.group_by("cluster")
        .agg([
            pl.len().alias("count"),
            pl.col("incidence_per_100k").mean().alias("mean_incidence"),
            pl.col("mortality_per_100k").mean().alias("mean_mortality"),
            pl.col("hiv_percent").mean().alias("mean_hiv_percent"),
            pl.col("case_detection_rate").mean().alias("mean_detection"),
        ])
        .sort(["mean_incidence", "mean_mortality", "cluster"], descending=[True, True, False])
    )


def burden_mapping(profiles: pl.DataFrame) -> dict[int, str]:
    """Map cluster ids of burden-ranked profiles to tier labels."""
    return {
        cluster: BURDEN_LABELS[min(idx, len(BURDEN_LABELS) - 1)]
        for idx, cluster in enumerate(profiles["cluster"].to_list())
    }


def assign_burden_labels(
    df: pl.DataFrame,
    label_mapping: dict[int, str] | None = None,
) -> pl.DataFrame:
    """
    Label clusters by burden rank rather than by their K-Means id.

    The cluster with the highest mean incidence (mean mortality breaks
    ties) becomes "High Burden", the next "Moderate Burden", and so on.

    Args:
        df: DataFrame with a ``cluster`` column.
        label_mapping: Precomputed ``burden_mapping``; derived from ``df``
            when omitted.

    Returns:
        DataFrame with an added ``cluster_label`` column.
    """
    if label_mapping is None:
        label_mapping = burden_mapping(generate_cluster_profiles(df))

    return df.with_columns(
        pl.col("cluster")
        .replace_strict(label_mapping, return_dtype=pl.String)
        .alias("cluster_label")
    )


def run_clustering(
    df: pl.DataFrame,
    seed: int = DEFAULT_SEED,
    n_clusters: int = N_CLUSTERS,
) -> ClusteringResult:
    """
    Cluster countries and label the clusters by burden.

    Args:
        df: Cleaned country records.
        seed: Random state for K-Means.
        n_clusters: Number of clusters.

    Returns:
        ClusteringResult with ``cluster`` and ``cluster_label`` columns added.
    """
    X = prepare_features(df)
    labels, kmeans = run_kmeans(X, n_clusters=n_clusters, seed=seed)

    silhouette = _silhouette(X, labels)
    if silhouette is None:
        logger.warning("Silhouette score undefined for this partition")
    else:
        logger.info(f"Silhouette Score: {silhouette:.4f}")

    clustered = df.with_columns(pl.Series("cluster", labels, dtype=pl.Int64))
    profiles = generate_cluster_profiles(clustered)
    label_mapping = burden_mapping(profiles)

    clustered = assign_burden_labels(clustered, label_mapping)
    profiles = assign_burden_labels(profiles, label_mapping).select(
        "cluster", "cluster_label", pl.exclude("cluster", "cluster_label")
    )

    return ClusteringResult(
        data=clustered,
        profiles=profiles,
        inertia=float(kmeans.inertia_),
        silhouette=silhouette,
        figure=cluster_scatter(clustered.to_pandas()),
    )
