"""
t2fis.pipeline

Stage controller: three strictly sequential GA passes plus post-processing.

  v0 = grid FIS
  v1 = tune(v0, learning mask)                   rule structure only
  v2 = tune(v1, tuning mask)                     upper MF shapes + outputs; lower scale/lag frozen
  v3 = tune(v2, advanced mask)                   lower scale/lag + outputs; upper shapes frozen
  final = v3 with rules(v3) + grid rules(v0), output MFs named

Stages 2 and 3 both build their tunable settings from the descriptor of the
stage-1 result, not from v2. Each stage is handed the same explicit seed, so a
stage's outcome depends only on its input FIS and the training data.

With run_tune = False every stage passes its input through unchanged (logged,
not an error). Any failure inside a stage raises PipelineError and aborts the
run; a partially tuned FIS is never returned as if it were complete.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .errors import PipelineError
from .fis import FIS
from .initializer import DEFAULT_EXOGENOUS, build_initial_fis, grid_rules
from .postprocess import postprocess
from .settings import SettingsDescriptor, TunableSettings, describe, mask_for_stage
from .tuning import TuneOptions, TuningResult, normalize_option_keys, tune
from .utils import load_yaml

logger = logging.getLogger(__name__)

STAGE_ORDER = ("learning", "tuning", "advanced")


def _default_options(stage: str) -> TuneOptions:
    return TuneOptions(optimization_type=mask_for_stage(stage).optimization_type)


@dataclass
class PipelineConfig:
    """
    Configuration for the full learn -> tune -> advanced-tune pipeline.
    """
    num_lags: int = 3
    mfs_per_input: int = 2
    exogenous_names: Tuple[str, str] = DEFAULT_EXOGENOUS
    mf_kind: str = "gaussian"
    and_method: str = "prod"
    run_tune: bool = True
    seed: int = 0
    learning: TuneOptions = field(default_factory=lambda: _default_options("learning"))
    tuning: TuneOptions = field(default_factory=lambda: _default_options("tuning"))
    advanced: TuneOptions = field(default_factory=lambda: _default_options("advanced"))

    def options_for(self, stage: str) -> TuneOptions:
        return getattr(self, stage)

    @classmethod
    def from_dict(
        cls, d: Optional[Dict[str, Any]], overrides: Optional[Dict[str, Any]] = None
    ) -> "PipelineConfig":
        """
        Keys: top-level scalars, an optional shared `ga` block applied to every
        stage, and per-stage `learning` / `tuning` / `advanced` blocks.

        `overrides` (e.g. CLI flags) is applied to every stage after both blocks;
        None values are ignored.
        """
        d = dict(d or {})
        shared = normalize_option_keys(d.pop("ga", {}) or {})
        forced = normalize_option_keys({k: v for k, v in (overrides or {}).items() if v is not None})
        kwargs: Dict[str, Any] = {}
        for stage in STAGE_ORDER:
            block = {"optimization_type": mask_for_stage(stage).optimization_type}
            block.update(shared)
            block.update(normalize_option_keys(d.pop(stage, {}) or {}))
            block.update(forced)
            kwargs[stage] = TuneOptions.from_dict(block)
        if "exogenous_names" in d:
            d["exogenous_names"] = tuple(d["exogenous_names"])
        known = {"num_lags", "mfs_per_input", "exogenous_names", "mf_kind", "and_method", "run_tune", "seed"}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown pipeline config keys: {sorted(unknown)}")
        kwargs.update(d)
        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PipelineConfig":
        return cls.from_dict(load_yaml(path))


@dataclass
class PipelineResult:
    stages: Dict[str, FIS]
    results: Dict[str, Optional[TuningResult]]
    final: FIS
    output_names: List[str]
    report: List[str]

    @property
    def initial(self) -> FIS:
        return self.stages["initial"]


def _run_stage(
    stage: str,
    fis: FIS,
    descriptor: SettingsDescriptor,
    options: TuneOptions,
    train_x: np.ndarray,
    train_y: np.ndarray,
    seed: int,
) -> TuningResult:
    logger.info("Stage '%s': %d rules in, seed %d", stage, fis.num_rules, seed)
    try:
        settings = TunableSettings.build(descriptor, mask_for_stage(stage), fis, num_max_rules=options.num_max_rules)
        result = tune(fis, settings, train_x, train_y, options, seed=seed)
    except Exception as e:
        raise PipelineError(stage, str(e)) from e
    logger.info("Stage '%s': best fitness %.6g after %d generations", stage, result.best_fitness, result.generations)
    return result


def run_pipeline(
    train_x: np.ndarray,
    train_y: np.ndarray,
    config: Optional[PipelineConfig] = None,
    *,
    initial_fis: Optional[FIS] = None,
) -> PipelineResult:
    """
    Run all three tuning stages and post-process the result.
    """
    cfg = config or PipelineConfig()
    train_x = np.asarray(train_x, dtype=np.float64)
    train_y = np.asarray(train_y, dtype=np.float64).ravel()

    v0 = initial_fis or build_initial_fis(
        cfg.num_lags,
        cfg.mfs_per_input,
        exogenous_names=cfg.exogenous_names,
        mf_kind=cfg.mf_kind,
        and_method=cfg.and_method,
    )
    if train_x.ndim != 2 or train_x.shape[1] != v0.num_inputs:
        raise ValueError(f"train_x must have shape (N, {v0.num_inputs}), got {train_x.shape}")
    if train_x.shape[0] != train_y.shape[0]:
        raise ValueError(f"train_x has {train_x.shape[0]} rows but train_y has {train_y.shape[0]}")

    original_rules = grid_rules(v0) if initial_fis is None else list(v0.rules)
    stages: Dict[str, FIS] = {"initial": v0}
    results: Dict[str, Optional[TuningResult]] = {}

    current = v0
    descriptor = describe(v0)
    for stage in STAGE_ORDER:
        if not cfg.run_tune:
            logger.warning("Tuning disabled: stage '%s' passes its input FIS through unchanged", stage)
            results[stage] = None
            current = current.copy()
        else:
            result = _run_stage(stage, current, descriptor, cfg.options_for(stage), train_x, train_y, cfg.seed)
            results[stage] = result
            current = result.fis
            if stage == "learning":
                # later stages are described relative to the learned structure
                descriptor = result.descriptor
        stages[stage] = current

    post = postprocess(current, original_rules)
    stages["final"] = post.fis
    logger.info("Final FIS: %d rules (%d tuned + %d grid)", post.fis.num_rules, current.num_rules, len(original_rules))
    return PipelineResult(
        stages=stages,
        results=results,
        final=post.fis,
        output_names=post.output_names,
        report=post.report,
    )
