"""
t2fis.metrics

Scalar forecast-error reductions.

Non-finite predictions (rows where no rule fired) are excluded; use
`finite_pairs` to see how many rows were kept.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np


def finite_pairs(y_true: np.ndarray, y_pred: np.ndarray) -> Tuple[np.ndarray, np.ndarray, int]:
    """
    Return (y_true, y_pred) restricted to finite predictions, plus the dropped count.
    """
    t = np.asarray(y_true, dtype=np.float64).ravel()
    p = np.asarray(y_pred, dtype=np.float64).ravel()
    if t.shape != p.shape:
        raise ValueError(f"Shape mismatch: y_true {t.shape} vs y_pred {p.shape}")
    ok = np.isfinite(p) & np.isfinite(t)
    return t[ok], p[ok], int(t.size - np.count_nonzero(ok))


def mse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    t, p, _ = finite_pairs(y_true, y_pred)
    if t.size == 0:
        return float("nan")
    return float(np.mean((t - p) ** 2))


def rmse(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    return float(np.sqrt(mse(y_true, y_pred)))


def mae(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    t, p, _ = finite_pairs(y_true, y_pred)
    if t.size == 0:
        return float("nan")
    return float(np.mean(np.abs(t - p)))


METRICS = {
    "rmse": rmse,
    "mse": mse,
    "mae": mae,
}
