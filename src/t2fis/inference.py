"""
t2fis.inference

Evaluation operator for the type-2 Sugeno FIS.

For every row x and rule r:
  upper_r(x) = T( mu_upper[i, a_ri](x_i) for inputs i with a_ri != 0 )
  lower_r(x) = T( mu_lower[i, a_ri](x_i) for inputs i with a_ri != 0 )
  f_r(x)     = sqrt(upper_r(x) * lower_r(x))          (combined firing)

where T is the FIS and_method (product or minimum).

Forecast (weighted Sugeno average):
  y(x) = sum_r f_r * w_r * z_r / sum_r f_r * w_r

with z_r the representative value of rule r's consequent output MF.
If no rule fires (zero denominator) the forecast is NaN. Callers (the GA fitness
function in particular) treat NaN as a degenerate evaluation, never as a crash.
Inputs outside a variable's declared range are evaluated as-is and only counted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .fis import FIS

logger = logging.getLogger(__name__)


@dataclass
class Evaluation:
    """
    Result of evaluating an FIS on a batch of rows.

      output: (N,) forecasts (NaN where no rule fired)
      upper:  (N, R) upper firing strengths
      lower:  (N, R) lower firing strengths
      firing: (N, R) combined firing strengths (geometric mean of upper/lower)
      out_of_range: number of feature values outside their variable's range
    """
    output: np.ndarray
    upper: np.ndarray
    lower: np.ndarray
    firing: np.ndarray
    out_of_range: int = 0

    @property
    def degenerate_rows(self) -> np.ndarray:
        return ~np.isfinite(self.output)


def _membership_table(fis: FIS, X: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build (I, M+1, N) upper/lower membership tables.

    Slot 0 of the MF axis is the neutral element (1.0) used for "don't care".
    """
    n_rows = X.shape[0]
    max_mfs = max((v.num_mfs for v in fis.inputs), default=0)
    upper = np.ones((fis.num_inputs, max_mfs + 1, n_rows), dtype=np.float64)
    lower = np.ones_like(upper)
    for i, var in enumerate(fis.inputs):
        col = X[:, i]
        for j, mf in enumerate(var.mfs, start=1):
            upper[i, j] = mf.evaluate_upper(col)
            lower[i, j] = mf.evaluate_lower(col)
    return upper, lower


def _count_out_of_range(fis: FIS, X: np.ndarray) -> int:
    total = 0
    for i, var in enumerate(fis.inputs):
        lo, hi = var.range
        col = X[:, i]
        total += int(np.count_nonzero((col < lo) | (col > hi)))
    return total


def evaluate(fis: FIS, X: np.ndarray) -> Evaluation:
    """
    Evaluate the FIS on a (N, I) matrix (a 1-D vector is treated as one row).
    """
    X = np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X.reshape(1, -1)
    if X.ndim != 2 or X.shape[1] != fis.num_inputs:
        raise ValueError(f"Expected input of shape (N, {fis.num_inputs}), got {X.shape}")

    n_rows = X.shape[0]
    n_rules = fis.num_rules

    oor = _count_out_of_range(fis, X)
    if oor:
        logger.debug("%d feature value(s) outside declared input ranges", oor)

    if n_rules == 0:
        empty = np.zeros((n_rows, 0))
        return Evaluation(np.full(n_rows, np.nan), empty, empty.copy(), empty.copy(), oor)

    with np.errstate(invalid="ignore", divide="ignore", over="ignore", under="ignore"):
        mu_u, mu_l = _membership_table(fis, X)

        ant = np.array([r.antecedent for r in fis.rules], dtype=np.int64)  # (R, I)
        idx_inputs = np.arange(fis.num_inputs)[None, :]
        # (R, I, N) memberships referenced by each rule
        terms_u = mu_u[idx_inputs, ant, :]
        terms_l = mu_l[idx_inputs, ant, :]

        if fis.and_method == "min":
            up = terms_u.min(axis=1).T
            lo = terms_l.min(axis=1).T
        else:
            up = terms_u.prod(axis=1).T
            lo = terms_l.prod(axis=1).T

        firing = np.sqrt(up * lo)

        weights = np.array([r.weight for r in fis.rules], dtype=np.float64)
        z = np.array(
            [fis.output.mfs[r.consequent - 1].representative_value() for r in fis.rules],
            dtype=np.float64,
        )
        fw = firing * weights[None, :]
        den = fw.sum(axis=1)
        num = (fw * z[None, :]).sum(axis=1)
        output = np.where(den > 0.0, num / np.where(den > 0.0, den, 1.0), np.nan)

    n_bad = int(np.count_nonzero(~np.isfinite(output)))
    if n_bad:
        logger.debug("%d/%d row(s) fired no rule", n_bad, n_rows)

    return Evaluation(output=output, upper=up, lower=lo, firing=firing, out_of_range=oor)


def evaluate_one(fis: FIS, x: np.ndarray) -> Tuple[float, np.ndarray]:
    """
    Evaluate a single feature vector.

    Returns:
      forecast (NaN if no rule fired), and an (R, 2) array of (upper, lower) firing.
    """
    ev = evaluate(fis, np.asarray(x, dtype=np.float64).reshape(1, -1))
    pairs = np.stack([ev.upper[0], ev.lower[0]], axis=1) if fis.num_rules else np.zeros((0, 2))
    return float(ev.output[0]), pairs


def predict(fis: FIS, X: np.ndarray) -> np.ndarray:
    """Forecasts only."""
    return evaluate(fis, X).output
