"""
End-to-end tests for the t2fis command line.
"""

import json

import pandas as pd
import pytest
from typer.testing import CliRunner

import t2fis.cli
from t2fis.cli import app
from t2fis.errors import PipelineError

runner = CliRunner()

FAST_RUN = ["--num_lags", "1", "--pop", "6", "--gens", "2", "--max_rules", "8"]


@pytest.fixture
def weather_csv(tmp_path):
    path = tmp_path / "weather.csv"
    result = runner.invoke(app, ["synth", "--out", str(path), "--n", "80", "--seed", "2"])
    assert result.exit_code == 0, result.output
    return path


def test_synth(weather_csv):
    df = pd.read_csv(weather_csv)
    assert len(df) == 80
    assert {"temperature", "humidity", "wind_speed"} <= set(df.columns)


def test_run_predict_rules(weather_csv, tmp_path):
    out = tmp_path / "run"
    result = runner.invoke(app, ["run", "--csv", str(weather_csv), "--out", str(out), *FAST_RUN])
    assert result.exit_code == 0, result.output

    for name in ("fis_v0", "fis_v1", "fis_v2", "fis_v3", "fis_final"):
        assert (out / f"{name}.json").exists()
    for name in ("rules.txt", "rules.csv", "rules.md", "metrics.json", "features_used.json"):
        assert (out / name).exists()

    metrics = json.loads((out / "metrics.json").read_text(encoding="utf-8"))
    assert set(metrics) == {"initial", "learning", "tuning", "advanced", "final"}

    lines = (out / "rules.txt").read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("1. IF ")

    preds = tmp_path / "preds.csv"
    result = runner.invoke(
        app,
        [
            "predict", "--csv", str(weather_csv), "--fis", str(out / "fis_final.json"),
            "--meta", str(out / "features_used.json"), "--out", str(preds),
        ],
    )
    assert result.exit_code == 0, result.output
    df = pd.read_csv(preds)
    assert len(df) == 80 - 1
    assert list(df.columns) == ["row", "prediction", "actual", "prediction_normalized"]

    result = runner.invoke(app, ["rules", "--fis", str(out / "fis_final.json")])
    assert result.exit_code == 0, result.output


def test_run_with_config_and_no_tune(weather_csv, tmp_path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("num_lags: 2\nmfs_per_input: 2\n", encoding="utf-8")
    out = tmp_path / "passthrough"
    result = runner.invoke(
        app, ["run", "--csv", str(weather_csv), "--out", str(out), "--config", str(cfg), "--no-tune"]
    )
    assert result.exit_code == 0, result.output
    v0 = json.loads((out / "fis_v0.json").read_text(encoding="utf-8"))
    v3 = json.loads((out / "fis_v3.json").read_text(encoding="utf-8"))
    assert v0 == v3
    assert len(v0["inputs"]) == 4


def test_run_rejects_wrong_exogenous_count(weather_csv, tmp_path):
    result = runner.invoke(
        app, ["run", "--csv", str(weather_csv), "--out", str(tmp_path / "x"), "--exog", "humidity"]
    )
    assert result.exit_code != 0


def test_run_reports_stage_failure(weather_csv, tmp_path):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text("tuning:\n  optimization_type: learning\n", encoding="utf-8")
    result = runner.invoke(
        app, ["run", "--csv", str(weather_csv), "--out", str(tmp_path / "bad"), "--config", str(cfg), *FAST_RUN]
    )
    assert result.exit_code == 1
    assert "Pipeline aborted" in result.output


@pytest.mark.parametrize("key", ["max_generations", "MaxGenerations"])
def test_ga_flags_override_stage_blocks(weather_csv, tmp_path, monkeypatch, key):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(
        f"ga:\n  {key}: 30\nlearning:\n  NumMaxRules: 16\nadvanced:\n  {key}: 40\n  population_size: 20\n",
        encoding="utf-8",
    )
    seen = []

    def fake_run_pipeline(train_x, train_y, config=None, **kwargs):
        seen.append(config)
        raise PipelineError("learning", "stopped")

    monkeypatch.setattr(t2fis.cli, "run_pipeline", fake_run_pipeline)
    result = runner.invoke(
        app,
        [
            "run", "--csv", str(weather_csv), "--out", str(tmp_path / "ovr"), "--config", str(cfg),
            "--gens", "2", "--pop", "6", "--max_rules", "8",
        ],
    )
    assert result.exit_code == 1, result.output
    [config] = seen
    for stage in ("learning", "tuning", "advanced"):
        assert config.options_for(stage).max_generations == 2
        assert config.options_for(stage).population_size == 6
    assert config.learning.num_max_rules == 8


def test_stage_block_without_flags_keeps_yaml(weather_csv, tmp_path, monkeypatch):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("advanced:\n  max_generations: 40\n", encoding="utf-8")
    seen = []

    def fake_run_pipeline(train_x, train_y, config=None, **kwargs):
        seen.append(config)
        raise PipelineError("learning", "stopped")

    monkeypatch.setattr(t2fis.cli, "run_pipeline", fake_run_pipeline)
    result = runner.invoke(
        app, ["run", "--csv", str(weather_csv), "--out", str(tmp_path / "keep"), "--config", str(cfg)]
    )
    assert result.exit_code == 1, result.output
    assert seen[0].advanced.max_generations == 40
    assert seen[0].learning.max_generations == 30
