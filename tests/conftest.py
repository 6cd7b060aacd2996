"""Shared fixtures: synthetic WHO-style TB burden CSV files."""

from pathlib import Path

import numpy as np
import polars as pl
import pytest

from tb_burden.extraction.who_tb import COLUMN_MAP, YEAR_COLUMN, load_tb_data

SOURCE_NAMES = {semantic: source for source, semantic in COLUMN_MAP.items()}

DEFAULTS = {
    "year": 2013,
    "population": 1_000_000,
    "prevalence_per_100k": 100.0,
    "mortality_per_100k": 10.0,
    "incidence_per_100k": 80.0,
    "hiv_percent": 5.0,
    "case_detection_rate": 70.0,
}


def _text(value):
    return None if value is None else str(value)


def write_tb_csv(path: Path, records: list[dict]) -> Path:
    """Write records keyed by semantic names using the source headers."""
    header = ["ISO.3.character.country.territory.code", YEAR_COLUMN, *COLUMN_MAP]
    rows = []
    for i, record in enumerate(records):
        values = {**DEFAULTS, **record}
        row = {
            "ISO.3.character.country.territory.code": f"C{i:02d}",
            YEAR_COLUMN: _text(values["year"]),
        }
        for semantic, source in SOURCE_NAMES.items():
            row[source] = _text(values[semantic])
        rows.append(row)

    pl.DataFrame(rows, schema={col: pl.String for col in header}).write_csv(path)
    return path


def synthetic_records(n: int = 30, seed: int = 0) -> list[dict]:
    """Countries whose mortality follows a noisy linear model."""
    rng = np.random.default_rng(seed)
    incidence = rng.uniform(5, 600, n)
    hiv = rng.uniform(0, 60, n)
    prevalence = incidence * 1.4 + rng.normal(0, 30, n)
    mortality = 0.08 * incidence + 0.3 * hiv + 0.02 * prevalence + rng.normal(0, 3, n)
    detection = 90 - incidence / 12 + rng.normal(0, 5, n)

    return [
        {
            "country": f"Country {i:02d}",
            "population": int(rng.integers(100_000, 50_000_000)),
            "prevalence_per_100k": round(float(prevalence[i]), 3),
            "mortality_per_100k": round(float(mortality[i]), 3),
            "incidence_per_100k": round(float(incidence[i]), 3),
            "hiv_percent": round(float(hiv[i]), 3),
            "case_detection_rate": round(float(detection[i]), 3),
        }
        for i in range(n)
    ]


# Mortality is exactly 0.1 x incidence; prevalence and HIV% are not collinear
FIVE_COUNTRIES = [
    {"country": "Mid", "incidence_per_100k": 100, "mortality_per_100k": 10, "prevalence_per_100k": 150,
     "hiv_percent": 4, "case_detection_rate": 75},
    {"country": "Highest", "incidence_per_100k": 700, "mortality_per_100k": 70, "prevalence_per_100k": 950,
     "hiv_percent": 20, "case_detection_rate": 45},
    {"country": "Lowest", "incidence_per_100k": 10, "mortality_per_100k": 1, "prevalence_per_100k": 20,
     "hiv_percent": 0.5, "case_detection_rate": 81},
    {"country": "High", "incidence_per_100k": 500, "mortality_per_100k": 50, "prevalence_per_100k": 720,
     "hiv_percent": 16, "case_detection_rate": 52},
    {"country": "Low", "incidence_per_100k": 50, "mortality_per_100k": 5, "prevalence_per_100k": 65,
     "hiv_percent": 1.2, "case_detection_rate": 79},
]


@pytest.fixture
def tb_csv(tmp_path):
    """Factory writing records to a CSV in the test directory."""

    def _write(records: list[dict], name: str = "TB_Burden_Country.csv") -> Path:
        return write_tb_csv(tmp_path / name, records)

    return _write


@pytest.fixture
def five_country_csv(tb_csv):
    older = [{**record, "year": 2012} for record in FIVE_COUNTRIES]
    return tb_csv(older + FIVE_COUNTRIES)


@pytest.fixture
def synthetic_csv(tb_csv):
    return tb_csv(synthetic_records())


@pytest.fixture
def synthetic_df(synthetic_csv) -> pl.DataFrame:
    return load_tb_data(synthetic_csv).data
