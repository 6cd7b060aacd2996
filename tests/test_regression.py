import numpy as np
import polars as pl
import pytest

from tb_burden.analysis.regression import (
    COOKS_THRESHOLD,
    PREDICTORS,
    coefficient_table,
    cooks_distance,
    fit_mortality_model,
    is_perfect_fit,
    remove_influential_rows,
    run_regression,
)
from tb_burden.exceptions import ModelFitError
from tb_burden.extraction.who_tb import load_tb_data

from conftest import synthetic_records


def test_coefficient_table_columns(synthetic_df):
    table = coefficient_table(fit_mortality_model(synthetic_df))

    assert table["term"].to_list() == ["Intercept", *PREDICTORS]
    assert table.columns == ["term", "estimate", "std_error", "t_value", "p_value", "ci_lower", "ci_upper"]
    assert (table["ci_lower"] < table["estimate"]).all()
    assert (table["estimate"] < table["ci_upper"]).all()


def test_recovers_known_effects(synthetic_df):
    result = run_regression(synthetic_df)
    estimates = dict(zip(result.coefficients["term"], result.coefficients["estimate"]))

    assert result.r_squared > 0.9
    assert estimates["hiv_percent"] == pytest.approx(0.3, abs=0.1)


def test_regression_is_deterministic(synthetic_df):
    first = run_regression(synthetic_df)
    second = run_regression(synthetic_df)

    assert first.coefficients.equals(second.coefficients)
    assert first.r_squared == second.r_squared
    assert first.removed_countries == second.removed_countries


def test_outlier_removal_never_adds_rows(synthetic_df):
    result = run_regression(synthetic_df)

    assert result.n_final <= result.n_initial == len(synthetic_df)
    assert result.n_final + len(result.removed_countries) == result.n_initial
    assert int(result.model.nobs) == result.n_final


def test_influential_country_is_removed(tb_csv):
    records = synthetic_records()
    records.append({
        "country": "Outlier",
        "incidence_per_100k": 5000,
        "prevalence_per_100k": 200,
        "hiv_percent": 5,
        "mortality_per_100k": 1,
        "case_detection_rate": 60,
    })
    df = load_tb_data(tb_csv(records)).data

    result = run_regression(df)

    assert "Outlier" in result.removed_countries
    assert result.n_final < result.n_initial
    assert "Outlier" not in result.influence.filter(pl.col("cooks_distance") <= COOKS_THRESHOLD)["country"]


def test_remove_influential_rows_ignores_undefined_distances():
    df = pl.DataFrame({"country": ["A", "B", "C"]})

    kept, removed = remove_influential_rows(df, np.array([0.2, np.nan, 3.5]))

    assert kept["country"].to_list() == ["A", "B"]
    assert removed["country"].to_list() == ["C"]


def test_cooks_distance_length(synthetic_df):
    distances = cooks_distance(fit_mortality_model(synthetic_df))

    assert len(distances) == len(synthetic_df)
    assert (distances >= 0).all()


def test_too_few_rows_raises(synthetic_df):
    with pytest.raises(ModelFitError, match="rows cannot fit"):
        fit_mortality_model(synthetic_df.head(4))


def test_singular_design_raises(synthetic_df):
    constant_hiv = synthetic_df.with_columns(pl.lit(2.0).alias("hiv_percent"))

    with pytest.raises(ModelFitError, match="singular"):
        run_regression(constant_hiv)


def test_figures(synthetic_df):
    result = run_regression(synthetic_df)

    assert f"R² = {result.r_squared:.3f}" in result.figure.layout.title.text
    assert [trace.name for trace in result.hiv_figure.data] == ["95% CI", "Countries", "OLS fit"]
    assert result.hiv_model.params.index.tolist() == ["Intercept", "hiv_percent"]


def test_perfect_fit_keeps_every_row(five_country_csv):
    df = load_tb_data(five_country_csv).data
    model = fit_mortality_model(df)

    assert is_perfect_fit(model)
    assert np.isnan(cooks_distance(model)).all()

    result = run_regression(df)
    assert result.removed_countries == []
    assert result.n_final == result.n_initial == 5
    assert result.coefficients.filter(pl.col("term") == "incidence_per_100k")["estimate"][0] == pytest.approx(0.1)


def test_noisy_fit_is_not_perfect(synthetic_df):
    model = fit_mortality_model(synthetic_df)

    assert not is_perfect_fit(model)
    assert not np.isnan(cooks_distance(model)).any()
