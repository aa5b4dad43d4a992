"""Tests for the command-line interface"""
import pytest
import pandas as pd
from typer.testing import CliRunner

from consensus_ensemble.cli import app

runner = CliRunner()


@pytest.fixture
def data_file(blob_frame, tmp_path):
    path = tmp_path / "data.csv"
    blob_frame.to_csv(path)
    return path


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "verbose: false\n"
        "ensemble:\n"
        "  nk: [2, 3]\n"
        "  reps: 2\n"
        "evaluate:\n"
        "  indices: [dunn, silhouette]\n"
    )
    return path


def test_algorithms_command():
    result = runner.invoke(app, ["algorithms"])
    assert result.exit_code == 0
    for name in ["gmm", "hc", "km", "sc"]:
        assert name in result.output


def test_check_config(config_file):
    result = runner.invoke(app, ["check-config", str(config_file)])
    assert result.exit_code == 0
    assert "Ensemble configuration" in result.output


def test_check_config_invalid(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("ensemble:\n  nk: []\n")
    result = runner.invoke(app, ["check-config", str(path)])
    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_run(data_file, config_file, tmp_path):
    out = tmp_path / "results"
    result = runner.invoke(app, ["run", str(data_file), "-c", str(config_file), "-o", str(out)])
    assert result.exit_code == 0, result.output
    assert (out / "clusters.csv").exists()
    assert (out / "summary.json").exists()
    assert "Selected k" in result.output


def test_run_with_reference(data_file, config_file, blob_frame, blob_data, tmp_path):
    _, y = blob_data
    ref_path = tmp_path / "ref.csv"
    pd.DataFrame({"label": y}, index=blob_frame.index).to_csv(ref_path)
    out = tmp_path / "results"
    result = runner.invoke(
        app, ["run", str(data_file), "-c", str(config_file), "-o", str(out), "-r", str(ref_path)]
    )
    assert result.exit_code == 0, result.output
    assert (out / "external_indices.csv").exists()


def test_run_missing_data_file(config_file, tmp_path):
    result = runner.invoke(app, ["run", str(tmp_path / "absent.csv"), "-c", str(config_file)])
    assert result.exit_code == 1
    assert "Run failed" in result.output


def test_check_config_with_override(config_file):
    result = runner.invoke(app, ["check-config", str(config_file), "--set", "ensemble.reps=7"])
    assert result.exit_code == 0
    assert "7" in result.output


def test_check_config_bad_override(config_file):
    result = runner.invoke(app, ["check-config", str(config_file), "--set", "ensemble.reps"])
    assert result.exit_code == 1
