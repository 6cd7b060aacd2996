"""
Plotly figure builders.

Each builder returns a ``go.Figure`` so callers decide whether to show it.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

AXIS_LABELS = {
    "country": "Country",
    "population": "Population",
    "prevalence_per_100k": "Prevalence per 100k",
    "mortality_per_100k": "Mortality per 100k",
    "incidence_per_100k": "Incidence per 100k",
    "hiv_percent": "HIV % in Incident TB",
    "case_detection_rate": "Case Detection Rate (%)",
    "cluster_label": "Burden",
}

BURDEN_COLORS = {
    "High Burden": "#e74c3c",
    "Moderate Burden": "#f39c12",
    "Low Burden": "#27ae60",
}


def correlation_heatmap(values: np.ndarray, labels: list[str]) -> go.Figure:
    """
    Upper-triangle heatmap with the coefficients written in each cell.

    Args:
        values: Square correlation matrix, already in display order.
        labels: Indicator names in the same order.
    """
    n = len(labels)
    mask = np.tril(np.ones((n, n), dtype=bool), k=-1)
    upper = np.where(mask, np.nan, values)
    text = [
        ["" if mask[i, j] or np.isnan(values[i, j]) else f"{values[i, j]:.2f}" for j in range(n)]
        for i in range(n)
    ]
    names = [AXIS_LABELS.get(label, label) for label in labels]

    fig = go.Figure(
        go.Heatmap(
            z=upper,
            x=names,
            y=names,
            text=text,
            texttemplate="%{text}",
            textfont=dict(color="black", size=11),
            colorscale="RdBu",
            zmin=-1,
            zmax=1,
            hoverongaps=False,
            colorbar=dict(title="r"),
        )
    )
    fig.update_yaxes(autorange="reversed")
    fig.update_layout(
        title="Correlation of TB Burden Indicators",
        height=550,
        margin=dict(l=20, r=20, t=60, b=20),
    )
    return fig


def fitted_line_scatter(
    df: pd.DataFrame,
    x: str,
    y: str,
    fit: pd.DataFrame,
    *,
    title: str,
    color: str,
    subtitle: str | None = None,
) -> go.Figure:
    """
    Scatter of ``y`` against ``x`` with an OLS line and 95% confidence band.

    Args:
        df: Observations to plot.
        x: Predictor column.
        y: Response column.
        fit: Frame with ``x``, ``mean``, ``ci_lower`` and ``ci_upper`` columns.
        title: Figure title.
        color: Line and band colour.
        subtitle: Optional second title line.
    """
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=pd.concat([fit["x"], fit["x"][::-1]]),
            y=pd.concat([fit["ci_upper"], fit["ci_lower"][::-1]]),
            fill="toself",
            fillcolor=color,
            opacity=0.2,
            line=dict(width=0),
            hoverinfo="skip",
            name="95% CI",
        )
    )
    fig.add_trace(
        go.Scatter(
            x=df[x],
            y=df[y],
            mode="markers",
            marker=dict(color="black", size=7),
            text=df["country"] if "country" in df.columns else None,
            hovertemplate="%{text}<br>%{x:.1f}, %{y:.1f}<extra></extra>",
            name="Countries",
        )
    )
    fig.add_trace(
        go.Scatter(x=fit["x"], y=fit["mean"], mode="lines", line=dict(color=color, width=2), name="OLS fit")
    )

    full_title = title if subtitle is None else f"{title}<br><sup>{subtitle}</sup>"
    fig.update_layout(
        title=full_title,
        xaxis_title=AXIS_LABELS.get(x, x),
        yaxis_title=AXIS_LABELS.get(y, y),
        template="plotly_white",
        height=550,
        legend=dict(orientation="h", y=-0.15),
    )
    return fig


def ranking_bar(df: pd.DataFrame, indicator: str, title: str) -> go.Figure:
    """Bar chart keeping the row order of ``df`` on the x-axis."""
    fig = px.bar(
        df,
        x="country",
        y=indicator,
        title=title,
        labels={
            "country": AXIS_LABELS["country"],
            indicator: AXIS_LABELS.get(indicator, indicator),
        },
        color_discrete_sequence=["steelblue"],
    )
    fig.update_xaxes(categoryorder="array", categoryarray=list(df["country"]))
    fig.update_layout(showlegend=False, xaxis_tickangle=-60, template="plotly_white")
    return fig


def cluster_scatter(df: pd.DataFrame) -> go.Figure:
    """Incidence against mortality, coloured by burden tier."""
    fig = px.scatter(
        df,
        x="incidence_per_100k",
        y="mortality_per_100k",
        color="cluster_label",
        color_discrete_map=BURDEN_COLORS,
        category_orders={"cluster_label": list(BURDEN_COLORS)},
        hover_name="country",
        hover_data={
            "incidence_per_100k": ":.1f",
            "mortality_per_100k": ":.1f",
            "hiv_percent": ":.1f",
            "case_detection_rate": ":.0f",
            "cluster_label": False,
        },
        title="Country Clusters by TB Burden",
        labels=AXIS_LABELS,
    )
    fig.update_traces(marker=dict(size=10))
    fig.update_layout(
        legend=dict(orientation="h", y=-0.15),
        height=600,
        template="plotly_white",
    )
    return fig
