"""
t2fis.tuning

Genetic tuning engine for the type-2 Sugeno FIS.

Contract:
  tune(fis, settings, train_x, train_y, options, seed=...) -> TuningResult

  - The chromosome is the gene layout of `settings` (rule structure for
    "learning", MF parameters for "tuning").
  - Fitness = forecast error of the decoded FIS on the training matrix (lower is
    better). Rows where no rule fires are penalized, so fitness is always finite.
  - Standard generational GA: elitism, tournament selection, uniform crossover for
    `crossover_fraction` of the non-elite children, mutation for the rest.
  - Population fitness can be evaluated in parallel with joblib. Each evaluation
    only reads the genome, the seed FIS and the training data.
  - Reproducibility is an argument: every call builds its own
    numpy Generator from `seed`, so a stage never depends on earlier random draws.

The input FIS is never modified; the best genome is decoded into a new FIS.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

import numpy as np
from joblib import Parallel, delayed

from .errors import TunableSettingsError
from .fis import FIS
from .inference import predict
from .metrics import METRICS
from .settings import OPTIMIZATION_TYPES, SettingsDescriptor, TunableSettings, describe

logger = logging.getLogger(__name__)

METHODS = ("ga",)

# CamelCase option names accepted by TuneOptions.from_dict
_OPTION_ALIASES = {
    "Method": "method",
    "OptimizationType": "optimization_type",
    "NumMaxRules": "num_max_rules",
    "PopulationSize": "population_size",
    "CrossoverFraction": "crossover_fraction",
    "MaxGenerations": "max_generations",
    "UseParallel": "use_parallel",
}


def normalize_option_keys(d: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Return a copy of `d` with CamelCase option names mapped to snake_case.

    Raises ValueError for unknown names and for a field given under both spellings.
    """
    known = {f.name for f in fields(TuneOptions)}
    out: Dict[str, Any] = {}
    source: Dict[str, str] = {}
    for key, value in (d or {}).items():
        name = _OPTION_ALIASES.get(key, key)
        if name not in known:
            raise ValueError(f"Unknown tuning option '{key}'")
        if name in out:
            raise ValueError(f"Tuning option '{name}' given twice ('{source[name]}' and '{key}')")
        out[name] = value
        source[name] = key
    return out


@dataclass
class TuneOptions:
    """
    Configuration for one GA tuning pass.
    """
    method: str = "ga"
    optimization_type: str = "tuning"
    num_max_rules: int = 64
    population_size: int = 50
    crossover_fraction: float = 0.8
    max_generations: int = 30
    elite_count: Optional[int] = None  # None -> ceil(5% of population), at least 1
    tournament_size: int = 2
    mutation_rate: float = 0.1
    mutation_scale: float = 0.1  # std of gaussian mutation as a fraction of gene bound width
    max_stall_generations: int = 20
    function_tolerance: float = 1e-6
    use_parallel: bool = False
    n_jobs: int = -1
    metric: str = "rmse"  # "rmse" | "mse" | "mae"
    degenerate_penalty: float = 1e6

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        if self.method not in METHODS:
            raise ValueError(f"Unknown search method '{self.method}'. Known: {METHODS}")
        if self.optimization_type not in OPTIMIZATION_TYPES:
            raise ValueError(f"optimization_type must be one of {OPTIMIZATION_TYPES}, got '{self.optimization_type}'")
        if self.num_max_rules < 1:
            raise ValueError("num_max_rules must be >= 1")
        if self.population_size < 2:
            raise ValueError("population_size must be >= 2")
        if not (0.0 <= self.crossover_fraction <= 1.0):
            raise ValueError(f"crossover_fraction must be in [0, 1], got {self.crossover_fraction}")
        if self.max_generations < 1:
            raise ValueError("max_generations must be >= 1")
        if self.elite_count is not None and not (0 <= self.elite_count < self.population_size):
            raise ValueError("elite_count must be in [0, population_size)")
        if self.tournament_size < 1:
            raise ValueError("tournament_size must be >= 1")
        if not (0.0 <= self.mutation_rate <= 1.0):
            raise ValueError("mutation_rate must be in [0, 1]")
        if self.max_stall_generations < 1:
            raise ValueError("max_stall_generations must be >= 1")
        if self.metric not in METRICS:
            raise ValueError(f"metric must be one of {sorted(METRICS)}, got '{self.metric}'")
        if not (math.isfinite(self.degenerate_penalty) and self.degenerate_penalty > 0):
            raise ValueError("degenerate_penalty must be a positive finite number")

    @property
    def n_elite(self) -> int:
        if self.elite_count is not None:
            return int(self.elite_count)
        return max(1, math.ceil(0.05 * self.population_size))

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]], **overrides: Any) -> "TuneOptions":
        """
        Build options from a dict using snake_case or CamelCase names.
        """
        kwargs = normalize_option_keys(d)
        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**kwargs)


class FitnessFunction:
    """
    Genome -> training error of the decoded FIS.

    Aggregation over rows:
      - all rows finite:   metric(y, y_hat)
      - some degenerate:   metric over finite rows + penalty * degenerate_fraction
      - none finite:       penalty
    """

    def __init__(
        self,
        fis: FIS,
        settings: TunableSettings,
        x: np.ndarray,
        y: np.ndarray,
        metric: str = "rmse",
        degenerate_penalty: float = 1e6,
    ):
        self.fis = fis
        self.settings = settings
        self.x = np.asarray(x, dtype=np.float64)
        self.y = np.asarray(y, dtype=np.float64).ravel()
        if self.x.ndim != 2 or self.x.shape[0] != self.y.shape[0]:
            raise ValueError(f"Training data mismatch: X {self.x.shape}, y {self.y.shape}")
        self.metric = metric
        self.metric_fn = METRICS[metric]
        self.penalty = float(degenerate_penalty)

    def score(self, y_pred: np.ndarray) -> float:
        y_pred = np.asarray(y_pred, dtype=np.float64).ravel()
        ok = np.isfinite(y_pred)
        n_ok = int(np.count_nonzero(ok))
        if n_ok == 0:
            return self.penalty
        err = float(self.metric_fn(self.y[ok], y_pred[ok]))
        if not math.isfinite(err):
            return self.penalty
        bad_fraction = 1.0 - n_ok / y_pred.size
        return err + self.penalty * bad_fraction

    def __call__(self, genome: np.ndarray) -> float:
        candidate = self.settings.decode(genome, self.fis)
        return self.score(predict(candidate, self.x))


@dataclass
class TuningResult:
    fis: FIS
    settings: TunableSettings
    descriptor: SettingsDescriptor
    best_fitness: float
    best_genome: np.ndarray
    history: List[float] = field(default_factory=list)
    generations: int = 0


# --------------------------------------------------------------------------------------
# GA operators
# --------------------------------------------------------------------------------------

def _random_population(rng: np.random.Generator, settings: TunableSettings, size: int) -> np.ndarray:
    lb, ub = settings.lower_bounds, settings.upper_bounds
    pop = rng.uniform(lb, ub, size=(size, len(settings)))
    ints = settings.integer_mask
    if ints.any():
        # integers drawn uniformly over the closed range
        pop[:, ints] = rng.integers(lb[ints].astype(np.int64), ub[ints].astype(np.int64) + 1,
                                    size=(size, int(ints.sum())))
    return pop


def _tournament(rng: np.random.Generator, scores: np.ndarray, k: int) -> int:
    contenders = rng.integers(0, scores.shape[0], size=k)
    return int(contenders[np.argmin(scores[contenders])])


def _crossover(rng: np.random.Generator, p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
    take_first = rng.random(p1.shape[0]) < 0.5
    return np.where(take_first, p1, p2)


def _mutate(
    rng: np.random.Generator,
    parent: np.ndarray,
    settings: TunableSettings,
    rate: float,
    scale: float,
) -> np.ndarray:
    n = parent.shape[0]
    child = parent.copy()
    hit = rng.random(n) < rate
    if not hit.any():
        hit[rng.integers(0, n)] = True

    lb, ub = settings.lower_bounds, settings.upper_bounds
    ints = settings.integer_mask

    real_hit = hit & ~ints
    if real_hit.any():
        width = (ub - lb)[real_hit]
        child[real_hit] += rng.normal(0.0, 1.0, size=int(real_hit.sum())) * scale * width

    int_hit = hit & ints
    if int_hit.any():
        child[int_hit] = rng.integers(lb[int_hit].astype(np.int64), ub[int_hit].astype(np.int64) + 1)
    return child


def _evaluate_population(fitness: FitnessFunction, pop: np.ndarray, parallel: Optional[Parallel]) -> np.ndarray:
    if parallel is None:
        scores = [fitness(g) for g in pop]
    else:
        scores = parallel(delayed(fitness)(g) for g in pop)
    return np.asarray(scores, dtype=np.float64)


def run_ga(
    fitness: FitnessFunction,
    settings: TunableSettings,
    seed_genome: np.ndarray,
    options: TuneOptions,
    rng: np.random.Generator,
    parallel: Optional[Parallel] = None,
) -> tuple[np.ndarray, float, List[float]]:
    """
    Minimize `fitness` over the settings' gene space.

    Returns:
      best_genome, best_fitness, history (best fitness after each generation, incl. gen 0)
    """
    size = options.population_size
    n_elite = min(options.n_elite, size - 1)

    pop = _random_population(rng, settings, size)
    pop[0] = seed_genome
    pop = np.array([settings.clip(g) for g in pop])
    scores = _evaluate_population(fitness, pop, parallel)

    best_i = int(np.argmin(scores))
    best_genome, best_score = pop[best_i].copy(), float(scores[best_i])
    history = [best_score]
    stall = 0

    for gen in range(1, options.max_generations + 1):
        order = np.argsort(scores, kind="stable")
        n_rest = size - n_elite
        n_cx = int(round(options.crossover_fraction * n_rest))
        shrink = 1.0 - (gen - 1) / options.max_generations

        children = [pop[i].copy() for i in order[:n_elite]]
        for _ in range(n_cx):
            p1 = pop[_tournament(rng, scores, options.tournament_size)]
            p2 = pop[_tournament(rng, scores, options.tournament_size)]
            children.append(_crossover(rng, p1, p2))
        for _ in range(n_rest - n_cx):
            parent = pop[_tournament(rng, scores, options.tournament_size)]
            children.append(
                _mutate(rng, parent, settings, options.mutation_rate, options.mutation_scale * shrink)
            )

        pop = np.array([settings.clip(c) for c in children])
        scores = _evaluate_population(fitness, pop, parallel)

        gen_i = int(np.argmin(scores))
        gen_best = float(scores[gen_i])
        if gen_best < best_score - options.function_tolerance:
            stall = 0
        else:
            stall += 1
        if gen_best < best_score:
            best_genome, best_score = pop[gen_i].copy(), gen_best
        history.append(best_score)
        logger.debug("generation %d: best=%.6g mean=%.6g stall=%d", gen, best_score, float(np.mean(scores)), stall)

        if stall >= options.max_stall_generations:
            logger.info("Stopping after %d generations: no improvement for %d generations", gen, stall)
            break

    return best_genome, best_score, history


def tune(
    fis: FIS,
    settings: TunableSettings,
    train_x: np.ndarray,
    train_y: np.ndarray,
    options: TuneOptions,
    *,
    seed: int = 0,
) -> TuningResult:
    """
    Run one GA pass and return the best FIS found (a new instance).
    """
    if options.optimization_type != settings.optimization_type:
        raise TunableSettingsError(
            f"Options request '{options.optimization_type}' but settings are for '{settings.optimization_type}'"
        )

    fitness = FitnessFunction(
        fis, settings, train_x, train_y,
        metric=options.metric, degenerate_penalty=options.degenerate_penalty,
    )
    rng = np.random.default_rng(seed)
    seed_genome = settings.encode(fis)

    logger.info(
        "GA %s: %d genes, population %d, up to %d generations%s",
        options.optimization_type, len(settings), options.population_size,
        options.max_generations, " (parallel)" if options.use_parallel else "",
    )

    if options.use_parallel:
        with Parallel(n_jobs=options.n_jobs) as parallel:
            best_genome, best_score, history = run_ga(fitness, settings, seed_genome, options, rng, parallel)
    else:
        best_genome, best_score, history = run_ga(fitness, settings, seed_genome, options, rng)

    best_fis = settings.decode(best_genome, fis)
    logger.info("GA %s done: best %s=%.6g (initial population best %.6g)",
                options.optimization_type, options.metric, best_score, history[0])

    return TuningResult(
        fis=best_fis,
        settings=settings,
        descriptor=describe(best_fis),
        best_fitness=best_score,
        best_genome=best_genome,
        history=history,
        generations=len(history) - 1,
    )
