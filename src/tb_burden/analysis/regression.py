"""
Linear models of TB mortality.

The main model regresses mortality on incidence, HIV share and prevalence.
Rows with a Cook's distance above ``COOKS_THRESHOLD`` are removed and the
model is refitted once. A separate mortality ~ HIV% model is fitted on the
full data for plotting only.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import polars as pl
import statsmodels.formula.api as smf
from loguru import logger
from patsy import PatsyError
from statsmodels.regression.linear_model import RegressionResultsWrapper

from tb_burden.charts import fitted_line_scatter
from tb_burden.exceptions import ModelFitError

RESPONSE = "mortality_per_100k"
PREDICTORS = ["incidence_per_100k", "hiv_percent", "prevalence_per_100k"]
COOKS_THRESHOLD = 1.0
ALPHA = 0.05


@dataclass
class RegressionResult:
    """Outlier-filtered mortality model and its diagnostics."""

    initial_model: RegressionResultsWrapper
    model: RegressionResultsWrapper
    hiv_model: RegressionResultsWrapper
    influence: pl.DataFrame
    removed_countries: list[str]
    n_initial: int
    n_final: int
    coefficients: pl.DataFrame
    r_squared: float
    adj_r_squared: float
    figure: go.Figure
    hiv_figure: go.Figure


def build_formula(response: str, predictors: list[str]) -> str:
    return f"{response} ~ {' + '.join(predictors)}"


def fit_ols(
    df: pl.DataFrame,
    response: str,
    predictors: list[str],
    stage: str,
) -> RegressionResultsWrapper:
    """
    Fit an OLS model with an intercept.

    Args:
        df: Observations.
        response: Dependent column.
        predictors: Independent columns.
        stage: Name used in error messages.

    Raises:
        ModelFitError: If there are not more rows than parameters or the
            design matrix is rank deficient.
    """
    n_params = len(predictors) + 1
    if len(df) <= n_params:
        raise ModelFitError(
            f"{stage}: {len(df)} rows cannot fit {n_params} parameters "
            "with residual degrees of freedom left"
        )

    try:
        model = smf.ols(build_formula(response, predictors), data=df.to_pandas()).fit()
    except (ValueError, np.linalg.LinAlgError, PatsyError) as e:
        raise ModelFitError(f"{stage}: OLS fit failed: {e}") from e

    exog = model.model.exog
    rank = np.linalg.matrix_rank(exog)
    if rank < exog.shape[1]:
        raise ModelFitError(
            f"{stage}: design matrix is singular (rank {rank} < {exog.shape[1]} parameters)"
        )

    return model


def fit_mortality_model(df: pl.DataFrame, stage: str = "mortality model") -> RegressionResultsWrapper:
    """Fit mortality ~ incidence + HIV% + prevalence."""
    return fit_ols(df, RESPONSE, PREDICTORS, stage)


def fit_hiv_model(df: pl.DataFrame) -> RegressionResultsWrapper:
    """Fit the bivariate mortality ~ HIV% model."""
    return fit_ols(df, RESPONSE, ["hiv_percent"], "HIV model")


def is_perfect_fit(model: RegressionResultsWrapper) -> bool:
    """True when the residual sum of squares is within rounding error of zero."""
    tolerance = np.finfo(float).eps * max(float(model.centered_tss), 1.0) * model.nobs
    return float(model.ssr) <= tolerance


def cooks_distance(model: RegressionResultsWrapper) -> np.ndarray:
    """
    Cook's distance for every observation of a fitted model.

    A perfect fit has no residual scale, so every distance is NaN.
    """
    if is_perfect_fit(model):
        logger.warning("Residuals are numerically zero; Cook's distance is undefined")
        return np.full(int(model.nobs), np.nan)

    with np.errstate(divide="ignore", invalid="ignore"):
        return np.asarray(model.get_influence().cooks_distance[0])


def remove_influential_rows(
    df: pl.DataFrame,
    distances: np.ndarray,
    threshold: float = COOKS_THRESHOLD,
) -> tuple[pl.DataFrame, pl.DataFrame]:
    """
    Split rows into kept and removed by Cook's distance.

    Undefined distances never mark a row as influential.

    Returns:
        Tuple of (kept rows, removed rows).
    """
    if len(distances) != len(df):
        raise ModelFitError(
            f"Got {len(distances)} Cook's distances for {len(df)} rows"
        )

    influential = pl.Series("influential", np.nan_to_num(distances, nan=0.0) > threshold)
    return df.filter(~influential), df.filter(influential)


def coefficient_table(model: RegressionResultsWrapper, alpha: float = ALPHA) -> pl.DataFrame:
    """Estimates, standard errors, t statistics, p-values and CIs."""
    intervals = model.conf_int(alpha=alpha)
    return pl.DataFrame(
        {
            "term": list(model.params.index),
            "estimate": model.params.to_numpy(),
            "std_error": model.bse.to_numpy(),
            "t_value": model.tvalues.to_numpy(),
            "p_value": model.pvalues.to_numpy(),
            "ci_lower": intervals[0].to_numpy(),
            "ci_upper": intervals[1].to_numpy(),
        }
    )


def fit_band(df: pl.DataFrame, x: str, y: str, points: int = 100) -> pd.DataFrame:
    """Bivariate OLS line with its 95% confidence band over the range of ``x``."""
    model = fit_ols(df, y, [x], f"{y} ~ {x} line")
    grid = np.linspace(df[x].min(), df[x].max(), points)
    frame = model.get_prediction(pd.DataFrame({x: grid})).summary_frame(alpha=ALPHA)
    return pd.DataFrame(
        {
            "x": grid,
            "mean": frame["mean"].to_numpy(),
            "ci_lower": frame["mean_ci_lower"].to_numpy(),
            "ci_upper": frame["mean_ci_upper"].to_numpy(),
        }
    )


def run_regression(df: pl.DataFrame) -> RegressionResult:
    """
    Fit, filter influential rows, refit, and plot.

    Args:
        df: Cleaned country records.

    Returns:
        RegressionResult for the refitted model.

    Raises:
        ModelFitError: If either fit is impossible.
    """
    initial = fit_mortality_model(df, stage="initial fit")
    distances = cooks_distance(initial)
    kept, removed = remove_influential_rows(df, distances)

    removed_countries = removed["country"].to_list()
    if removed_countries:
        logger.info(f"Removed {len(removed_countries)} influential rows: {removed_countries}")
    else:
        logger.info(f"No rows with Cook's distance > {COOKS_THRESHOLD}")

    model = fit_mortality_model(kept, stage="refit without influential rows")
    hiv_model = fit_hiv_model(df)

    logger.success(f"Mortality model R² = {model.rsquared:.3f} on {len(kept):,} rows")

    figure = fitted_line_scatter(
        kept.to_pandas(),
        "incidence_per_100k",
        RESPONSE,
        fit_band(kept, "incidence_per_100k", RESPONSE),
        title="TB Mortality vs. Incidence with Confidence Interval",
        subtitle=f"R² = {model.rsquared:.3f}",
        color="darkred",
    )
    hiv_figure = fitted_line_scatter(
        df.to_pandas(),
        "hiv_percent",
        RESPONSE,
        fit_band(df, "hiv_percent", RESPONSE),
        title="Relationship Between HIV Prevalence in TB Cases and TB Mortality",
        color="purple",
    )

    return RegressionResult(
        initial_model=initial,
        model=model,
        hiv_model=hiv_model,
        influence=df.select("country").with_columns(pl.Series("cooks_distance", distances)),
        removed_countries=removed_countries,
        n_initial=len(df),
        n_final=len(kept),
        coefficients=coefficient_table(model),
        r_squared=float(model.rsquared),
        adj_r_squared=float(model.rsquared_adj),
        figure=figure,
        hiv_figure=hiv_figure,
    )
