"""
WHO TB burden snapshot loader.

Reads the "TB burden by country" CSV export, keeps the latest reporting
year and reduces it to the seven fields the analysis works with.

Example:
    >>> dataset = load_tb_data("TB_Burden_Country.csv")
    >>> dataset.year, len(dataset.data)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import polars as pl
from loguru import logger

from tb_burden.exceptions import DataLoadError, EmptyDatasetError

YEAR_COLUMN = "Year"

# Source header -> semantic name
COLUMN_MAP: dict[str, str] = {
    "Country.or.territory.name": "country",
    "Estimated.total.population.number": "population",
    "Estimated.prevalence.of.TB..all.forms..per.100.000.population": "prevalence_per_100k",
    "Estimated.mortality.of.TB.cases..all.forms..excluding.HIV..per.100.000.population": "mortality_per_100k",
    "Estimated.incidence..all.forms..per.100.000.population": "incidence_per_100k",
    "Estimated.HIV.in.incident.TB..percent.": "hiv_percent",
    "Case.detection.rate..all.forms...percent": "case_detection_rate",
}

REQUIRED_COLUMNS = [YEAR_COLUMN, *COLUMN_MAP]

NUMERIC_COLUMNS = [name for name in COLUMN_MAP.values() if name != "country"]

# The five burden indicators used for correlation and clustering
INDICATORS = [
    "prevalence_per_100k",
    "mortality_per_100k",
    "incidence_per_100k",
    "hiv_percent",
    "case_detection_rate",
]

# Known long-form name that is shortened for plot labels
COUNTRY_RENAMES = {
    "Democratic People's Republic of Korea": "Korea",
}

NULL_MARKERS = ["", "NA"]


@dataclass
class TBDataset:
    """Cleaned records for the latest reporting year."""

    data: pl.DataFrame
    year: int
    stage_counts: dict[str, int] = field(default_factory=dict)


def read_raw(path: Path | str) -> pl.DataFrame:
    """
    Read the raw CSV with every column as text.

    Args:
        path: Location of the CSV snapshot.

    Returns:
        Polars DataFrame with the source headers.

    Raises:
        DataLoadError: If the file is missing, cannot be parsed, or lacks
            one of the required columns.
    """
    path = Path(path)
    if not path.exists():
        raise DataLoadError(f"Data file not found at {path}")

    try:
        df = pl.read_csv(path, infer_schema=False, null_values=NULL_MARKERS)
    except (OSError, pl.exceptions.PolarsError) as e:
        raise DataLoadError(f"Could not read {path}: {e}") from e

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise DataLoadError(f"{path} is missing required columns: {', '.join(missing)}")

    logger.info(f"Read {len(df):,} rows from {path}")
    return df


def _year_expr() -> pl.Expr:
    return pl.col(YEAR_COLUMN).cast(pl.Float64, strict=False)


def latest_year(df: pl.DataFrame) -> int:
    """Return the maximum reported year, ignoring unparseable values."""
    year = df.select(_year_expr().max()).item()
    if year is None:
        raise EmptyDatasetError("No parseable values in the Year column")
    return int(year)


def filter_latest_year(df: pl.DataFrame) -> tuple[pl.DataFrame, int]:
    """Keep only the rows reported for the latest year."""
    year = latest_year(df)
    filtered = df.filter(_year_expr() == year)
    logger.info(f"Latest year {year}: {len(filtered):,} rows")
    return filtered, year


def select_columns(df: pl.DataFrame) -> pl.DataFrame:
    """
    Project and rename the seven analysis columns.

    Numeric fields are cast leniently: values that do not parse become
    null and are removed later by ``drop_incomplete_rows``.
    """
    return df.select(
        [pl.col(source).alias(target) for source, target in COLUMN_MAP.items()]
    ).with_columns(
        [pl.col(col).cast(pl.Float64, strict=False).fill_nan(None) for col in NUMERIC_COLUMNS]
    )


def drop_incomplete_rows(df: pl.DataFrame) -> pl.DataFrame:
    """Drop every row with a missing value in any analysis column."""
    cleaned = df.drop_nulls(subset=list(COLUMN_MAP.values()))
    dropped = len(df) - len(cleaned)
    if dropped:
        logger.info(f"Dropped {dropped:,} rows with missing values")
    return cleaned


def normalize_country_names(df: pl.DataFrame) -> pl.DataFrame:
    """Apply the fixed country name patches in ``COUNTRY_RENAMES``."""
    return df.with_columns(
        pl.col("country").replace(COUNTRY_RENAMES).alias("country")
    )


def load_tb_data(path: Path | str) -> TBDataset:
    """
    Load, filter and clean the TB burden snapshot.

    Args:
        path: Location of the CSV snapshot.

    Returns:
        TBDataset with one complete record per country.

    Raises:
        DataLoadError: If the file cannot be read.
        EmptyDatasetError: If no rows survive the year filter or cleaning.
    """
    raw = read_raw(path)
    latest, year = filter_latest_year(raw)
    if latest.is_empty():
        raise EmptyDatasetError(f"No rows reported for year {year}")

    selected = select_columns(latest)
    cleaned = normalize_country_names(drop_incomplete_rows(selected))
    if cleaned.is_empty():
        raise EmptyDatasetError(
            f"All {len(selected):,} rows for year {year} have missing values"
        )

    logger.success(f"Loaded {len(cleaned):,} complete country records for {year}")
    return TBDataset(
        data=cleaned,
        year=year,
        stage_counts={
            "raw": len(raw),
            "latest_year": len(latest),
            "complete": len(cleaned),
        },
    )


def describe_source(path: Path | str) -> dict:
    """
    Summarize a source file without running the analysis.

    Returns:
        Dictionary with row counts, year range and per-stage counts.
    """
    raw = read_raw(path)
    years = raw.select(
        _year_expr().min().alias("first"),
        _year_expr().max().alias("last"),
    ).row(0, named=True)

    info = {
        "path": str(path),
        "rows": len(raw),
        "countries": raw.select(pl.col("Country.or.territory.name").n_unique()).item(),
        "first_year": int(years["first"]) if years["first"] is not None else None,
        "last_year": int(years["last"]) if years["last"] is not None else None,
    }

    if info["last_year"] is not None:
        latest, _ = filter_latest_year(raw)
        info["latest_year_rows"] = len(latest)
        info["complete_rows"] = len(drop_incomplete_rows(select_columns(latest)))

    return info
