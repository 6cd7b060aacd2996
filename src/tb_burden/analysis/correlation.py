"""
Correlation analysis of TB burden indicators.

Computes pairwise Pearson coefficients and orders the indicators by
hierarchical clustering so related indicators sit next to each other in
the heatmap.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import plotly.graph_objects as go
import polars as pl
from loguru import logger
from scipy.cluster.hierarchy import leaves_list, linkage
from scipy.spatial.distance import squareform

from tb_burden.charts import correlation_heatmap
from tb_burden.extraction.who_tb import INDICATORS


@dataclass
class CorrelationResult:
    """Correlation matrix with display order and heatmap."""

    matrix: pl.DataFrame
    order: list[str]
    pairs: pl.DataFrame
    figure: go.Figure


def matrix_values(matrix: pl.DataFrame) -> np.ndarray:
    """Numeric part of a correlation frame as a square array."""
    return matrix.drop("indicator").to_numpy()


def compute_correlation_matrix(
    df: pl.DataFrame,
    indicators: list[str] = INDICATORS,
) -> pl.DataFrame:
    """
    Pearson correlation using pairwise-complete observations.

    Args:
        df: Cleaned country records.
        indicators: Numeric columns to correlate.

    Returns:
        Frame with an ``indicator`` column and one column per indicator.
    """
    values = (
        df.select(indicators)
        .to_pandas()
        .corr(method="pearson", min_periods=2)
        .to_numpy()
    )
    values = (values + values.T) / 2

    diagonal = np.diag(values)
    degenerate = [name for name, d in zip(indicators, diagonal) if np.isnan(d)]
    if degenerate:
        logger.warning(f"Correlation undefined for zero-variance indicators: {degenerate}")
    np.fill_diagonal(values, np.where(np.isnan(diagonal), np.nan, 1.0))

    return pl.DataFrame({"indicator": indicators}).with_columns(
        [pl.Series(name, values[:, i]) for i, name in enumerate(indicators)]
    )


def hierarchical_order(matrix: pl.DataFrame) -> list[str]:
    """
    Order indicators by complete-linkage clustering on ``1 - r``.

    Returns the input order when the matrix has undefined coefficients.
    """
    labels = matrix["indicator"].to_list()
    values = matrix_values(matrix)

    if len(labels) < 2 or np.isnan(values).any():
        return labels

    distances = squareform(1 - values, checks=False)
    tree = linkage(distances, method="complete")
    return [labels[i] for i in leaves_list(tree)]


def reorder_matrix(matrix: pl.DataFrame, order: list[str]) -> pl.DataFrame:
    """Permute rows and columns of a correlation frame."""
    position = {name: i for i, name in enumerate(matrix["indicator"].to_list())}
    rows = [position[name] for name in order]
    return matrix[rows].select(["indicator", *order])


def interpret_correlation(r: float) -> str:
    """Describe strength and direction of a coefficient."""
    abs_r = abs(r)

    if abs_r >= 0.7:
        strength = "Strong"
    elif abs_r >= 0.4:
        strength = "Moderate"
    elif abs_r >= 0.2:
        strength = "Weak"
    else:
        strength = "Very weak"

    direction = "positive" if r > 0 else "negative"
    return f"{strength} {direction}"


def strongest_pairs(matrix: pl.DataFrame, limit: int | None = None) -> pl.DataFrame:
    """Off-diagonal pairs sorted by absolute coefficient."""
    labels = matrix["indicator"].to_list()
    values = matrix_values(matrix)

    rows = [
        {
            "indicator_a": labels[i],
            "indicator_b": labels[j],
            "r": float(values[i, j]),
            "interpretation": interpret_correlation(float(values[i, j])),
        }
        for i in range(len(labels))
        for j in range(i + 1, len(labels))
        if not np.isnan(values[i, j])
    ]

    pairs = pl.DataFrame(
        rows,
        schema={"indicator_a": pl.String, "indicator_b": pl.String, "r": pl.Float64, "interpretation": pl.String},
    )
    pairs = pairs.sort(pl.col("r").abs(), descending=True, maintain_order=True)
    return pairs if limit is None else pairs.head(limit)


def run_correlation(df: pl.DataFrame) -> CorrelationResult:
    """Compute the correlation matrix, its clustering order and heatmap."""
    matrix = compute_correlation_matrix(df)
    order = hierarchical_order(matrix)
    ordered = reorder_matrix(matrix, order)

    logger.info(f"Correlation order: {order}")

    return CorrelationResult(
        matrix=matrix,
        order=order,
        pairs=strongest_pairs(matrix),
        figure=correlation_heatmap(matrix_values(ordered), order),
    )
