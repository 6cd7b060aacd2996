"""
Runtime configuration.

Settings are read from the environment (optionally a ``.env`` file) and can
be overridden by command line options.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

DEFAULT_DATA_PATH = Path("TB_Burden_Country.csv")
DEFAULT_SEED = 42
DEFAULT_LOG_DIR = Path("logs")


@dataclass
class Settings:
    """Configuration for a single analysis run."""

    data_path: Path = DEFAULT_DATA_PATH
    seed: int = DEFAULT_SEED
    log_dir: Path = DEFAULT_LOG_DIR
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Recognised variables: TB_DATA_PATH, TB_RANDOM_SEED, TB_LOG_DIR,
        TB_LOG_LEVEL.
        """
        load_dotenv()

        seed_raw = os.getenv("TB_RANDOM_SEED")
        try:
            seed = int(seed_raw) if seed_raw else DEFAULT_SEED
        except ValueError:
            logger.warning(f"Ignoring invalid TB_RANDOM_SEED={seed_raw!r}, using {DEFAULT_SEED}")
            seed = DEFAULT_SEED

        return cls(
            data_path=Path(os.getenv("TB_DATA_PATH", str(DEFAULT_DATA_PATH))),
            seed=seed,
            log_dir=Path(os.getenv("TB_LOG_DIR", str(DEFAULT_LOG_DIR))),
            log_level=os.getenv("TB_LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(settings: Settings) -> None:
    """Route loguru output to stderr and a rotating log file."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        str(settings.log_dir / "tb_analysis_{time}.log"),
        rotation="10 MB",
        retention="7 days",
        level=settings.log_level,
    )
