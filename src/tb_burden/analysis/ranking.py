"""Country rankings by burden indicator."""

from __future__ import annotations

from dataclasses import dataclass

import plotly.graph_objects as go
import polars as pl

from tb_burden.charts import ranking_bar

TOP_N = 10


@dataclass
class RankingResult:
    """Top countries by incidence and their bar chart."""

    table: pl.DataFrame
    figure: go.Figure


def rank_countries(
    df: pl.DataFrame,
    indicator: str,
    limit: int = TOP_N,
    *,
    descending: bool = True,
) -> pl.DataFrame:
    """
    Sort countries by an indicator and keep the first ``limit`` rows.

    Ties keep their input order.

    Args:
        df: Cleaned country records.
        indicator: Column to rank by.
        limit: Number of rows to keep.
        descending: Highest values first when True.

    Returns:
        DataFrame with a 1-based ``rank`` column first.
    """
    return (
        df.sort(indicator, descending=descending, maintain_order=True)
        .head(limit)
        .with_row_index("rank", offset=1)
    )


def top_incidence(df: pl.DataFrame, limit: int = TOP_N) -> pl.DataFrame:
    """Countries with the highest incidence per 100k."""
    return rank_countries(df, "incidence_per_100k", limit)


def run_ranking(df: pl.DataFrame, limit: int = TOP_N) -> RankingResult:
    table = top_incidence(df, limit)
    figure = ranking_bar(
        table.to_pandas(),
        "incidence_per_100k",
        title=f"Top {limit} TB Incidence Rate by Country",
    )
    return RankingResult(table=table, figure=figure)
