"""
t2fis.cli

Command Line Interface for the t2fis project.

Commands:
  - synth:   Write a synthetic weather CSV (temperature, humidity, wind_speed)
  - run:     Build features from a CSV and run the three-stage GA pipeline
  - predict: Forecast with a saved FIS on a new CSV, reusing training metadata
  - rules:   Print the rule report of a saved FIS

Core constraints:
  - Inference (predict) MUST reuse training-time metadata (features_used.json).
  - A YAML config (--config) supplies defaults; CLI flags override it.

Usage examples:

  # Synthetic data
  t2fis synth --out data/weather.csv --n 600

  # Full pipeline
  t2fis run --csv data/weather.csv --target temperature --exog humidity,wind_speed --out runs/exp1

  # Predict
  t2fis predict --csv new.csv --fis runs/exp1/fis_final.json --meta runs/exp1/features_used.json --out preds.csv

  # Rules
  t2fis rules --fis runs/exp1/fis_final.json
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .data import (
    FeatureConfig,
    FeatureMetadata,
    generate_synthetic_weather,
    load_series_csv,
    prepare_forecasting_data,
    prepare_inference_features,
)
from .errors import FISError, PipelineError
from .fis import load_fis, save_fis
from .inference import predict
from .metrics import mae, rmse
from .pipeline import PipelineConfig, run_pipeline
from .tuning import normalize_option_keys
from .postprocess import format_rules, name_output_mfs, rules_to_dataframe, rules_to_markdown
from .utils import ensure_dir, load_yaml, setup_logging, write_json

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()

# pipeline stage -> saved FIS file suffix
ARTIFACT_NAMES = {
    "initial": "v0",
    "learning": "v1",
    "tuning": "v2",
    "advanced": "v3",
    "final": "final",
}


def _parse_csv_list(s: Optional[str]) -> Optional[List[str]]:
    if s is None:
        return None
    parts = [p.strip() for p in s.split(",") if p.strip()]
    return parts if parts else None


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging.")):
    setup_logging(verbose)


@app.command("synth")
def cmd_synth(
    out: Path = typer.Option(..., "--out", help="Output CSV path."),
    n: int = typer.Option(600, "--n", help="Number of samples."),
    seed: int = typer.Option(0, "--seed", help="Random seed."),
):
    df = generate_synthetic_weather(n_samples=n, seed=seed)
    out.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out, index=False)
    console.print(f"[green]Done.[/green] Wrote {len(df)} rows to: {out}")


@app.command("run")
def cmd_run(
    csv: Path = typer.Option(..., "--csv", help="Input CSV with target and exogenous columns."),
    out: Path = typer.Option(..., "--out", help="Output directory for run artifacts."),
    target: str = typer.Option("temperature", "--target", help="Target column to forecast."),
    exog: str = typer.Option("humidity,wind_speed", "--exog", help="Two comma-separated exogenous columns."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML pipeline config."),
    num_lags: Optional[int] = typer.Option(None, "--num_lags", help="Number of lagged target inputs (D)."),
    mfs: Optional[int] = typer.Option(None, "--mfs", help="Membership functions per input."),
    pop: Optional[int] = typer.Option(None, "--pop", help="GA population size (all stages)."),
    gens: Optional[int] = typer.Option(None, "--gens", help="GA max generations (all stages)."),
    max_rules: Optional[int] = typer.Option(None, "--max_rules", help="NumMaxRules for rule learning."),
    train_fraction: float = typer.Option(0.5, "--train_fraction", help="Chronological training fraction."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed used for every stage."),
    parallel: Optional[bool] = typer.Option(None, "--parallel/--no-parallel", help="Parallel fitness evaluation."),
    tune_enabled: bool = typer.Option(True, "--tune/--no-tune", help="Disable to pass the grid FIS through."),
):
    exog_list = _parse_csv_list(exog) or []
    if len(exog_list) != 2:
        raise typer.BadParameter("--exog must name exactly two columns, e.g. humidity,wind_speed")

    raw = load_yaml(config) if config is not None else {}
    if max_rules is not None:
        raw["learning"] = dict(normalize_option_keys(raw.get("learning")), num_max_rules=max_rules)
    for key, value in (("num_lags", num_lags), ("mfs_per_input", mfs), ("seed", seed)):
        if value is not None:
            raw[key] = value
    raw["exogenous_names"] = exog_list
    if not tune_enabled:
        raw["run_tune"] = False
    # flags win over the shared and per-stage YAML blocks alike
    ga_flags = {"population_size": pop, "max_generations": gens, "use_parallel": parallel}
    cfg = PipelineConfig.from_dict(raw, overrides=ga_flags)

    fcfg = FeatureConfig(
        target_col=target,
        exogenous_cols=tuple(exog_list),
        num_lags=cfg.num_lags,
        train_fraction=train_fraction,
    )

    console.print("[bold]Loading and preparing data...[/bold]")
    df = load_series_csv(csv, fcfg.columns)
    data = prepare_forecasting_data(df, fcfg)
    console.print(f"Train X: {data.train_x.shape}, validation X: {data.validation_x.shape}")

    ensure_dir(out)
    data.metadata.to_json(out / "features_used.json")

    console.print("[bold]Running learn -> tune -> advanced-tune pipeline...[/bold]")
    try:
        result = run_pipeline(data.train_x, data.train_y, cfg)
    except (PipelineError, FISError) as e:
        console.print(f"[red]Pipeline aborted:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)

    for name, fis in result.stages.items():
        save_fis(fis, out / f"fis_{ARTIFACT_NAMES[name]}.json")
    (out / "rules.txt").write_text("\n".join(result.report) + "\n", encoding="utf-8")
    rules_to_dataframe(result.final, result.output_names).to_csv(out / "rules.csv", index=False)
    (out / "rules.md").write_text(rules_to_markdown(result.final, result.output_names), encoding="utf-8")

    table = Table(title="Forecast Error (normalized units)")
    table.add_column("Stage")
    table.add_column("Rules")
    table.add_column("Train RMSE")
    table.add_column("Val RMSE")
    table.add_column("Val MAE")
    metrics = {}
    for name, fis in result.stages.items():
        tr = predict(fis, data.train_x)
        va = predict(fis, data.validation_x)
        row = {
            "rules": fis.num_rules,
            "train_rmse": rmse(data.train_y, tr),
            "validation_rmse": rmse(data.validation_y, va),
            "validation_mae": mae(data.validation_y, va),
        }
        metrics[name] = row
        table.add_row(
            name,
            str(row["rules"]),
            f"{row['train_rmse']:.6g}",
            f"{row['validation_rmse']:.6g}",
            f"{row['validation_mae']:.6g}",
        )
    write_json(metrics, out / "metrics.json")
    console.print(table)

    console.print(f"[green]Done.[/green] Artifacts saved to: {out}")


@app.command("predict")
def cmd_predict(
    csv: Path = typer.Option(..., "--csv", help="CSV with the same columns used for training."),
    fis_path: Path = typer.Option(..., "--fis", help="Path to a saved FIS (e.g. fis_final.json)."),
    meta: Path = typer.Option(..., "--meta", help="Path to features_used.json from training."),
    out: Path = typer.Option(..., "--out", help="Output CSV path for predictions."),
):
    metadata = FeatureMetadata.from_json(meta)
    fis = load_fis(fis_path)

    df = pd.read_csv(csv)
    X, y = prepare_inference_features(df, metadata)
    pred = predict(fis, X)

    n_bad = int(np.count_nonzero(~np.isfinite(pred)))
    if n_bad:
        console.print(f"[yellow]Warning:[/yellow] {n_bad} row(s) fired no rule; prediction left empty.")

    out_df = pd.DataFrame(
        {
            "row": np.arange(metadata.num_lags, metadata.num_lags + len(pred)),
            "prediction": metadata.denormalize_target(pred),
            "actual": metadata.denormalize_target(y),
            "prediction_normalized": pred,
        }
    )
    out.parent.mkdir(parents=True, exist_ok=True)
    out_df.to_csv(out, index=False)
    console.print(f"RMSE (normalized): {rmse(y, pred):.6g}")
    console.print(f"[green]Done.[/green] Wrote predictions to: {out}")


@app.command("rules")
def cmd_rules(
    fis_path: Path = typer.Option(..., "--fis", help="Path to a saved FIS."),
):
    fis = load_fis(fis_path)
    names = name_output_mfs(fis.output)

    table = Table(title=f"Rules: {fis.name} ({fis.num_rules})")
    table.add_column("Rule")
    for ln in format_rules(fis, names):
        table.add_row(ln)
    console.print(table)


if __name__ == "__main__":
    app()
