"""
Data loading for the TB burden snapshot.

Reads the WHO CSV export and reduces it to cleaned country records.
"""

from .who_tb import (
    COLUMN_MAP,
    INDICATORS,
    TBDataset,
    describe_source,
    drop_incomplete_rows,
    load_tb_data,
    normalize_country_names,
)

__all__ = [
    "COLUMN_MAP",
    "INDICATORS",
    "TBDataset",
    "describe_source",
    "drop_incomplete_rows",
    "load_tb_data",
    "normalize_country_names",
]
