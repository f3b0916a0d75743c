"""
t2fis: GA-tuned type-2 Sugeno FIS for one-step-ahead forecasting.

This package provides:
  - A type-2 Sugeno FIS (upper MF + lower scale/lag) and its evaluation operator
  - A grid rule-base initializer
  - A genetic tuning engine over stage-scoped tunable settings
  - A three-stage pipeline: rule learning -> parameter tuning -> advanced tuning
  - Post-processing: rule merge, semantic output names, readable rule report
  - CSV -> lagged feature matrices for the forecasting task

Public API policy:
  - The names re-exported here are the stable library surface.
  - The CLI (`t2fis`) wraps the full pipeline.
"""

from .errors import FISError, FISStructureError, PipelineError, TunableSettingsError
from .fis import FIS, Rule, Variable, load_fis, save_fis
from .inference import evaluate, evaluate_one, predict
from .initializer import build_initial_fis, grid_rules
from .pipeline import PipelineConfig, PipelineResult, run_pipeline
from .postprocess import format_rules, merge_rules, name_output_mfs
from .settings import TunableMask, TunableSettings, describe, mask_for_stage
from .tuning import TuneOptions, TuningResult, tune

__all__ = [
    "__version__",
    "FIS",
    "Rule",
    "Variable",
    "FISError",
    "FISStructureError",
    "PipelineError",
    "TunableSettingsError",
    "load_fis",
    "save_fis",
    "evaluate",
    "evaluate_one",
    "predict",
    "build_initial_fis",
    "grid_rules",
    "PipelineConfig",
    "PipelineResult",
    "run_pipeline",
    "format_rules",
    "merge_rules",
    "name_output_mfs",
    "TunableMask",
    "TunableSettings",
    "describe",
    "mask_for_stage",
    "TuneOptions",
    "TuningResult",
    "tune",
]

__version__ = "0.1.0"
