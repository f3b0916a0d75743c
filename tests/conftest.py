"""
Shared fixtures for the t2fis test suite.

Everything here is tiny on purpose: GA tests run a handful of generations on a
few dozen rows.
"""

import numpy as np
import pytest

from t2fis.fis import FIS, Rule, Variable
from t2fis.initializer import build_initial_fis
from t2fis.membership import ConstantMF, TriangularMF, Type2MF


@pytest.fixture
def small_fis():
    """Grid FIS with one lag + two exogenous inputs, 2 MFs each (8 rules)."""
    return build_initial_fis(1, 2)


@pytest.fixture
def hand_fis():
    """
    One input 'x' on [0, 1] with shoulder MFs 'low'/'high' and output constants
    0.3 and 0.9. At x = 0.25: low = 0.75, high = 0.25.
    """
    x = Variable(
        name="x",
        range=(0.0, 1.0),
        mfs=[
            Type2MF(TriangularMF(0.0, 0.0, 1.0), name="low"),
            Type2MF(TriangularMF(0.0, 1.0, 1.0), name="high"),
        ],
    )
    y = Variable(name="y", range=(0.0, 1.0), mfs=[ConstantMF(0.3), ConstantMF(0.9)])
    return FIS(
        name="hand",
        inputs=[x],
        output=y,
        rules=[Rule((1,), 1), Rule((2,), 2)],
    )


@pytest.fixture
def two_input_fis(hand_fis):
    """Two copies of the hand input, a single rule (low AND low) -> 1."""
    x1 = hand_fis.inputs[0]
    x2 = Variable(name="x2", range=x1.range, mfs=x1.mfs)
    return FIS(name="pair", inputs=[x1, x2], output=hand_fis.output, rules=[Rule((1, 1), 1)])


@pytest.fixture
def small_data():
    rng = np.random.default_rng(42)
    X = rng.uniform(0.0, 1.0, size=(40, 3))
    y = 0.5 * X[:, 0] + 0.3 * X[:, 1] + 0.2 * X[:, 2]
    return X, y


@pytest.fixture
def fast_ga():
    """Keyword arguments for a very short GA pass."""
    return {
        "population_size": 8,
        "max_generations": 3,
        "max_stall_generations": 3,
    }


@pytest.fixture
def fast_pipeline_dict():
    return {
        "num_lags": 1,
        "ga": {"population_size": 6, "max_generations": 2, "max_stall_generations": 2},
        "learning": {"num_max_rules": 8},
    }
