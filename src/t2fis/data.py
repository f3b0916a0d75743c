"""
t2fis.data

Feature builder for one-step-ahead forecasting.

Pipeline:
  CSV -> numeric coercion -> median imputation -> min-max scaling to [0, 1]
      -> lagged feature matrix -> chronological train/validation split

Row t of the feature matrix is:
  [target[t-D], ..., target[t-1], exog1[t-1], exog2[t-1]]   ->   y = target[t]

Training-time preprocessing (medians, min/max) is captured in FeatureMetadata so
inference on a new CSV is identical.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .initializer import DEFAULT_EXOGENOUS


def _coerce_numeric_series(s: pd.Series) -> pd.Series:
    return pd.to_numeric(s, errors="coerce")


def _minmax_fit(arr: np.ndarray) -> Tuple[float, float]:
    finite = arr[np.isfinite(arr)]
    if finite.size == 0:
        return 0.0, 1.0
    return float(np.min(finite)), float(np.max(finite))


def _minmax_transform(arr: np.ndarray, mn: float, mx: float) -> np.ndarray:
    if not np.isfinite(mn) or not np.isfinite(mx) or mx <= mn:
        # constant or invalid -> map to zeros
        out = np.zeros_like(arr, dtype=np.float64)
        out[~np.isfinite(arr)] = np.nan
        return out
    return (arr - mn) / (mx - mn)


def _minmax_inverse(arr: np.ndarray, mn: float, mx: float) -> np.ndarray:
    if mx <= mn:
        return np.full_like(arr, mn, dtype=np.float64)
    return arr * (mx - mn) + mn


@dataclass
class FeatureConfig:
    """
    How to turn a raw CSV into lagged training/validation matrices.
    """
    target_col: str = "temperature"
    exogenous_cols: Tuple[str, str] = DEFAULT_EXOGENOUS
    num_lags: int = 3
    train_fraction: float = 0.5

    def __post_init__(self):
        self.exogenous_cols = tuple(self.exogenous_cols)
        if len(self.exogenous_cols) != 2:
            raise ValueError(f"Exactly two exogenous columns are required, got {list(self.exogenous_cols)}")
        if self.num_lags < 1:
            raise ValueError("num_lags must be >= 1")
        if not (0.0 < self.train_fraction < 1.0):
            raise ValueError("train_fraction must be in (0, 1)")

    @property
    def columns(self) -> List[str]:
        return [self.target_col, *self.exogenous_cols]


@dataclass
class FeatureMetadata:
    """
    Captures training-time preprocessing so inference is identical.
    """
    target_col: str
    exogenous_cols: List[str]
    num_lags: int
    impute_median: Dict[str, float] = field(default_factory=dict)
    scaler_min: Dict[str, float] = field(default_factory=dict)
    scaler_max: Dict[str, float] = field(default_factory=dict)

    @property
    def columns(self) -> List[str]:
        return [self.target_col, *self.exogenous_cols]

    def to_json(self, path: str | Path) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_text(json.dumps(asdict(self), indent=2), encoding="utf-8")

    @staticmethod
    def from_json(path: str | Path) -> "FeatureMetadata":
        obj = json.loads(Path(path).read_text(encoding="utf-8"))
        return FeatureMetadata(
            target_col=obj["target_col"],
            exogenous_cols=list(obj.get("exogenous_cols", [])),
            num_lags=int(obj["num_lags"]),
            impute_median=dict(obj.get("impute_median", {})),
            scaler_min=dict(obj.get("scaler_min", {})),
            scaler_max=dict(obj.get("scaler_max", {})),
        )

    def denormalize_target(self, y: np.ndarray) -> np.ndarray:
        return _minmax_inverse(
            np.asarray(y, dtype=np.float64),
            float(self.scaler_min[self.target_col]),
            float(self.scaler_max[self.target_col]),
        )


@dataclass
class ForecastData:
    train_x: np.ndarray
    train_y: np.ndarray
    validation_x: np.ndarray
    validation_y: np.ndarray
    metadata: FeatureMetadata


def load_series_csv(csv_path: str | Path, columns: Sequence[str]) -> pd.DataFrame:
    """
    Load the requested columns as float series (non-numeric -> NaN).
    """
    df = pd.read_csv(csv_path)
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"Columns missing from CSV: {missing}")
    return pd.DataFrame({c: _coerce_numeric_series(df[c]) for c in columns})


def _impute(df: pd.DataFrame, medians: Dict[str, float]) -> pd.DataFrame:
    out = df.copy()
    for c, med in medians.items():
        out[c] = out[c].fillna(med)
    return out


def build_lagged_features(
    target: np.ndarray,
    exog1: np.ndarray,
    exog2: np.ndarray,
    num_lags: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Window the series into (X, y) with X[:, :D] = target lags (oldest first).
    """
    target = np.asarray(target, dtype=np.float64)
    exog1 = np.asarray(exog1, dtype=np.float64)
    exog2 = np.asarray(exog2, dtype=np.float64)
    n = target.shape[0]
    if not (exog1.shape[0] == exog2.shape[0] == n):
        raise ValueError("target and exogenous series must have the same length")
    if n <= num_lags:
        raise ValueError(f"Need more than {num_lags} samples to build lagged features, got {n}")

    rows = n - num_lags
    X = np.empty((rows, num_lags + 2), dtype=np.float64)
    for k in range(num_lags):
        X[:, k] = target[k:k + rows]
    X[:, num_lags] = exog1[num_lags - 1:n - 1]
    X[:, num_lags + 1] = exog2[num_lags - 1:n - 1]
    y = target[num_lags:]
    return X, y


def split_train_validation(
    X: np.ndarray,
    y: np.ndarray,
    train_fraction: float = 0.5,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Chronological split (no shuffling: validation rows follow training rows).
    """
    n = X.shape[0]
    n_train = int(round(n * train_fraction))
    n_train = max(1, min(n_train, n - 1))
    return X[:n_train], y[:n_train], X[n_train:], y[n_train:]


def prepare_forecasting_data(df: pd.DataFrame, cfg: FeatureConfig) -> ForecastData:
    """
    Impute, normalize, window and split a raw frame holding cfg.columns.
    """
    missing = [c for c in cfg.columns if c not in df.columns]
    if missing:
        raise ValueError(f"Columns missing from data: {missing}")

    frame = pd.DataFrame({c: _coerce_numeric_series(df[c]) for c in cfg.columns})
    medians: Dict[str, float] = {}
    for c in cfg.columns:
        arr = frame[c].to_numpy(dtype=np.float64)
        medians[c] = float(np.nanmedian(arr)) if np.isfinite(arr).any() else 0.0
    frame = _impute(frame, medians)

    scaler_min: Dict[str, float] = {}
    scaler_max: Dict[str, float] = {}
    normed: Dict[str, np.ndarray] = {}
    for c in cfg.columns:
        arr = frame[c].to_numpy(dtype=np.float64)
        mn, mx = _minmax_fit(arr)
        scaler_min[c], scaler_max[c] = mn, mx
        normed[c] = _minmax_transform(arr, mn, mx)

    X, y = build_lagged_features(
        normed[cfg.target_col], normed[cfg.exogenous_cols[0]], normed[cfg.exogenous_cols[1]], cfg.num_lags
    )
    train_x, train_y, val_x, val_y = split_train_validation(X, y, cfg.train_fraction)

    meta = FeatureMetadata(
        target_col=cfg.target_col,
        exogenous_cols=list(cfg.exogenous_cols),
        num_lags=cfg.num_lags,
        impute_median=medians,
        scaler_min=scaler_min,
        scaler_max=scaler_max,
    )
    return ForecastData(train_x, train_y, val_x, val_y, meta)


def prepare_inference_features(df: pd.DataFrame, metadata: FeatureMetadata) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build (X, y) from a new frame using training medians and min/max.
    """
    missing = [c for c in metadata.columns if c not in df.columns]
    if missing:
        raise ValueError(f"Inference data missing required columns: {missing}")
    frame = pd.DataFrame({c: _coerce_numeric_series(df[c]) for c in metadata.columns})
    frame = _impute(frame, {c: float(metadata.impute_median.get(c, 0.0)) for c in metadata.columns})
    normed = {
        c: _minmax_transform(
            frame[c].to_numpy(dtype=np.float64),
            float(metadata.scaler_min[c]),
            float(metadata.scaler_max[c]),
        )
        for c in metadata.columns
    }
    ex1, ex2 = metadata.exogenous_cols
    return build_lagged_features(normed[metadata.target_col], normed[ex1], normed[ex2], metadata.num_lags)


def generate_synthetic_weather(n_samples: int = 600, seed: int = 0, period: float = 48.0) -> pd.DataFrame:
    """
    Deterministic synthetic weather: daily-cycle temperature driven by humidity
    and wind speed, plus AR(1) noise.
    """
    rng = np.random.default_rng(seed)
    t = np.arange(n_samples, dtype=np.float64)
    phase = 2.0 * np.pi * t / period

    humidity = 60.0 - 15.0 * np.sin(phase) + rng.normal(0.0, 3.0, n_samples)
    wind = 4.0 + 1.5 * np.cos(phase / 3.0) + np.abs(rng.normal(0.0, 1.0, n_samples))

    noise = np.zeros(n_samples)
    for i in range(1, n_samples):
        noise[i] = 0.7 * noise[i - 1] + rng.normal(0.0, 0.5)

    temperature = 18.0 + 6.0 * np.sin(phase) - 0.05 * (humidity - 60.0) - 0.4 * (wind - 4.0) + noise
    return pd.DataFrame(
        {
            "t": t.astype(int),
            "temperature": temperature,
            "humidity": humidity,
            "wind_speed": wind,
        }
    )
