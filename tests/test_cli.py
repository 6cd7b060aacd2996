import sys

import pytest
from loguru import logger
from typer.testing import CliRunner

from tb_burden.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def log_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("TB_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("TB_DATA_PATH", raising=False)
    monkeypatch.delenv("TB_RANDOM_SEED", raising=False)
    yield tmp_path / "logs"
    logger.remove()
    logger.add(sys.stderr)


def test_run_prints_report(synthetic_csv, log_dir):
    result = runner.invoke(app, ["run", "--data", str(synthetic_csv), "--seed", "1"])

    assert result.exit_code == 0, result.output
    assert "Mortality model" in result.output
    assert "Silhouette score" in result.output
    assert "Cluster Profiles" in result.output
    assert list(log_dir.glob("tb_analysis_*.log"))


def test_run_reads_data_path_from_environment(synthetic_csv, monkeypatch):
    monkeypatch.setenv("TB_DATA_PATH", str(synthetic_csv))

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 0, result.output


def test_run_missing_file_exits_with_error(tmp_path):
    result = runner.invoke(app, ["run", "--data", str(tmp_path / "missing.csv")])

    assert result.exit_code == 1
    assert "Analysis failed" in result.output


def test_info(five_country_csv):
    result = runner.invoke(app, ["info", "--data", str(five_country_csv)])

    assert result.exit_code == 0, result.output
    assert "latest_year_rows" in result.output
    assert "2013" in result.output


def test_clusters(synthetic_csv):
    result = runner.invoke(app, ["clusters", "--data", str(synthetic_csv), "--max-k", "4"])

    assert result.exit_code == 0, result.output
    assert "diagnostics" in result.output
