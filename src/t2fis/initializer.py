"""
t2fis.initializer

Grid-partition rule-base initializer.

Builds the starting FIS for the tuning pipeline:
  - D lag inputs (lagD ... lag1, oldest first) + 2 exogenous inputs
  - each input grid-partitioned into `mfs_per_input` type-2 MFs with the lower
    set equal to the upper set (scale 1, lag 0), i.e. a type-1 starting point
  - one constant output MF per grid cell: mfs_per_input ** num_inputs MFs,
    evenly spaced over the output range
  - one rule per combination of input MF indices
"""

from __future__ import annotations

import itertools
import math
from typing import List, Sequence, Tuple

import numpy as np

from .errors import FISStructureError
from .fis import FIS, Rule, Variable
from .membership import ConstantMF, GaussianMF, MembershipFunction, TrapezoidalMF, TriangularMF, Type2MF

DEFAULT_EXOGENOUS = ("humidity", "wind_speed")


def input_names(num_lags: int, exogenous_names: Sequence[str] = DEFAULT_EXOGENOUS) -> List[str]:
    if len(exogenous_names) != 2:
        raise ValueError(f"Exactly two exogenous feature names are required, got {list(exogenous_names)}")
    return [f"lag{k}" for k in range(num_lags, 0, -1)] + list(exogenous_names)


def grid_partition(
    vmin: float,
    vmax: float,
    terms: int,
    kind: str = "gaussian",
    plateau_ratio: float = 0.25,
) -> List[MembershipFunction]:
    """
    Evenly spaced MFs over [vmin, vmax]; neighbours cross at membership 0.5.
    """
    if terms < 1:
        raise ValueError("terms must be >= 1")
    if terms == 1:
        centers = [(vmin + vmax) / 2.0]
        step = vmax - vmin
    else:
        centers = list(np.linspace(vmin, vmax, terms))
        step = centers[1] - centers[0]

    out: List[MembershipFunction] = []
    for i, c in enumerate(centers):
        left = centers[i - 1] if i > 0 else c - step
        right = centers[i + 1] if i < len(centers) - 1 else c + step
        if kind == "gaussian":
            sigma = step / (2.0 * math.sqrt(2.0 * math.log(2.0)))
            out.append(GaussianMF(float(c), float(sigma)))
        elif kind == "triangular":
            out.append(TriangularMF(float(left), float(c), float(right)))
        elif kind == "trapezoidal":
            half = max(0.0, plateau_ratio) * step * 0.5
            out.append(TrapezoidalMF(float(left), float(c - half), float(c + half), float(right)))
        else:
            raise ValueError(f"Unsupported input MF kind for grid partition: '{kind}'")
    return out


def grid_rules(fis: FIS) -> List[Rule]:
    """
    One rule per combination of input MF indices; combination k -> output MF k+1.
    """
    ranges = [range(1, v.num_mfs + 1) for v in fis.inputs]
    rules = [
        Rule(antecedent=combo, consequent=k + 1, weight=1.0)
        for k, combo in enumerate(itertools.product(*ranges))
    ]
    if len(rules) > fis.output.num_mfs:
        raise FISStructureError(
            f"Grid needs {len(rules)} output MFs, output '{fis.output.name}' has {fis.output.num_mfs}"
        )
    return rules


def build_initial_fis(
    num_lags: int,
    mfs_per_input: int = 2,
    *,
    exogenous_names: Sequence[str] = DEFAULT_EXOGENOUS,
    input_range: Tuple[float, float] = (0.0, 1.0),
    output_range: Tuple[float, float] = (0.0, 1.0),
    output_name: str = "forecast",
    mf_kind: str = "gaussian",
    and_method: str = "prod",
    name: str = "t2fis",
) -> FIS:
    """
    Create FIS(v0): grid-partitioned inputs, per-cell constant outputs, grid rules.
    """
    if num_lags < 1:
        raise ValueError("num_lags must be >= 1")
    if mfs_per_input < 1:
        raise ValueError("mfs_per_input must be >= 1")

    names = input_names(num_lags, exogenous_names)
    lo, hi = input_range

    inputs = []
    for vname in names:
        shapes = grid_partition(lo, hi, mfs_per_input, kind=mf_kind)
        mfs = [Type2MF(upper=s, name=f"mf{j}") for j, s in enumerate(shapes, start=1)]
        inputs.append(Variable(name=vname, range=input_range, mfs=mfs))

    n_out = mfs_per_input ** len(names)
    olo, ohi = output_range
    values = np.linspace(olo, ohi, n_out) if n_out > 1 else np.array([(olo + ohi) / 2.0])
    output = Variable(name=output_name, range=output_range, mfs=[ConstantMF(float(v)) for v in values])

    fis = FIS(name=name, inputs=inputs, output=output, rules=(), and_method=and_method)
    return fis.with_rules(grid_rules(fis))
