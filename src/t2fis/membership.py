"""
t2fis.membership

Membership function shapes and the interval type-2 wrapper used by FIS inputs.

Shapes (type-1, vectorized over numpy arrays):
  - TriangularMF(a, b, c)
  - TrapezoidalMF(a, b, c, d)
  - GaussianMF(mean, sigma)
  - ConstantMF(value)        (Sugeno output singleton)

Every shape knows its own representative value (used by Sugeno defuzzification
and by output naming), so callers never branch on a type string.

Type-2 sets:
  Type2MF wraps an *upper* shape and derives the *lower* set from two modifiers:

    mu_lower(x) = lower_scale * clip((mu_upper(x) - lag) / (1 - lag), 0, 1)

  where `lag` is the left lag for x below the upper peak and the right lag
  otherwise. The lower set is therefore always nested inside the upper set.
  With lower_scale = 1 and lag = (0, 0) the lower set equals the upper set,
  i.e. the MF degenerates to an ordinary type-1 MF.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple, Type

import numpy as np

from .errors import FISStructureError

_EPS = 1e-12


class MembershipFunction:
    """
    Base class for type-1 shapes.

    Subclasses are frozen dataclasses whose fields are the numeric parameters.
    """

    kind: str = ""

    @property
    def params(self) -> Tuple[float, ...]:
        raise NotImplementedError

    def evaluate(self, x: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def representative_value(self) -> float:
        raise NotImplementedError

    def peak(self) -> float:
        return self.representative_value()

    def with_params(self, params: Sequence[float]) -> "MembershipFunction":
        """Return a new shape of the same kind with repaired parameters."""
        return type(self)(*_repair(self.kind, params))


@dataclass(frozen=True)
class TriangularMF(MembershipFunction):
    a: float
    b: float
    c: float

    kind = "triangular"

    @property
    def params(self) -> Tuple[float, ...]:
        return (self.a, self.b, self.c)

    def evaluate(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        left = (x - self.a) / max(self.b - self.a, _EPS)
        right = (self.c - x) / max(self.c - self.b, _EPS)
        mu = np.minimum(left, right)
        # shoulders: a == b or b == c keeps the peak at 1
        mu = np.where(x == self.b, 1.0, mu)
        return np.clip(mu, 0.0, 1.0)

    def representative_value(self) -> float:
        return float(self.b)


@dataclass(frozen=True)
class TrapezoidalMF(MembershipFunction):
    a: float
    b: float
    c: float
    d: float

    kind = "trapezoidal"

    @property
    def params(self) -> Tuple[float, ...]:
        return (self.a, self.b, self.c, self.d)

    def evaluate(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        left = (x - self.a) / max(self.b - self.a, _EPS)
        right = (self.d - x) / max(self.d - self.c, _EPS)
        mu = np.minimum(np.minimum(left, right), 1.0)
        mu = np.where((x >= self.b) & (x <= self.c), 1.0, mu)
        return np.clip(mu, 0.0, 1.0)

    def representative_value(self) -> float:
        return float(self.b + self.c) / 2.0


@dataclass(frozen=True)
class GaussianMF(MembershipFunction):
    mean: float
    sigma: float

    kind = "gaussian"

    @property
    def params(self) -> Tuple[float, ...]:
        return (self.mean, self.sigma)

    def evaluate(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        z = (x - self.mean) / max(self.sigma, _EPS)
        return np.exp(-0.5 * z * z)

    def representative_value(self) -> float:
        return float(self.mean)


@dataclass(frozen=True)
class ConstantMF(MembershipFunction):
    value: float

    kind = "constant"

    @property
    def params(self) -> Tuple[float, ...]:
        return (self.value,)

    def evaluate(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        return np.where(x == self.value, 1.0, 0.0)

    def representative_value(self) -> float:
        return float(self.value)


MF_TYPES: Dict[str, Type[MembershipFunction]] = {
    cls.kind: cls for cls in (TriangularMF, TrapezoidalMF, GaussianMF, ConstantMF)
}


def _repair(kind: str, params: Sequence[float]) -> Tuple[float, ...]:
    vals = [float(p) for p in params]
    if kind in ("triangular", "trapezoidal"):
        return tuple(sorted(vals))
    if kind == "gaussian":
        mean, sigma = vals
        return (mean, max(abs(sigma), 1e-6))
    return tuple(vals)


def make_mf(kind: str, params: Sequence[float]) -> MembershipFunction:
    """
    Build a shape from its kind name (deserialization entry point).
    """
    cls = MF_TYPES.get(kind)
    if cls is None:
        raise ValueError(f"Unknown membership function kind: '{kind}'. Known: {sorted(MF_TYPES)}")
    return cls(*_repair(kind, params))


@dataclass(frozen=True)
class Type2MF:
    """
    Interval type-2 membership function: upper shape + lower scale/lag.

    lower_lag is a (left, right) pair. In symmetric mode both entries are equal.
    """
    upper: MembershipFunction
    lower_scale: float = 1.0
    lower_lag: Tuple[float, float] = (0.0, 0.0)
    name: str = field(default="", compare=False)

    def __post_init__(self):
        object.__setattr__(self, "lower_scale", float(self.lower_scale))
        object.__setattr__(self, "lower_lag", tuple(float(v) for v in self.lower_lag))
        if not (0.0 < self.lower_scale <= 1.0):
            raise FISStructureError(f"lower_scale must be in (0, 1], got {self.lower_scale}")
        if len(self.lower_lag) != 2:
            raise FISStructureError("lower_lag must be a (left, right) pair")
        for lag in self.lower_lag:
            if not (0.0 <= lag < 1.0):
                raise FISStructureError(f"lower_lag entries must be in [0, 1), got {self.lower_lag}")

    @property
    def kind(self) -> str:
        return self.upper.kind

    def evaluate_upper(self, x: np.ndarray) -> np.ndarray:
        return self.upper.evaluate(x)

    def evaluate_lower(self, x: np.ndarray) -> np.ndarray:
        x = np.asarray(x, dtype=np.float64)
        mu_u = self.upper.evaluate(x)
        left, right = self.lower_lag
        lag = np.where(x < self.upper.peak(), left, right)
        mu = np.clip((mu_u - lag) / (1.0 - lag), 0.0, 1.0)
        return self.lower_scale * mu

    def evaluate(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return self.evaluate_upper(x), self.evaluate_lower(x)

    def representative_value(self) -> float:
        return self.upper.representative_value()

    @property
    def is_type1(self) -> bool:
        return self.lower_scale == 1.0 and self.lower_lag == (0.0, 0.0)

    def replace(self, **changes) -> "Type2MF":
        data = {
            "upper": self.upper,
            "lower_scale": self.lower_scale,
            "lower_lag": self.lower_lag,
            "name": self.name,
        }
        data.update(changes)
        return Type2MF(**data)
