"""
t2fis.errors

Exception types shared across the package.

  - FISError              base class (a ValueError, so CLI-level handlers treat it like bad input)
  - FISStructureError     an FIS/MF/rule that violates structural invariants
  - TunableSettingsError  a tunable-settings view that does not match its target FIS
                          (pipeline wiring defect; never recovered)
  - PipelineError         a tuning stage failed; the pipeline is aborted

Degenerate evaluations (no rule fired, inputs out of range) are NOT errors:
they surface as NaN forecasts and fitness penalties.
"""


class FISError(ValueError):
    """Base class for fuzzy inference system errors."""


class FISStructureError(FISError):
    """Raised when an FIS, variable, MF or rule violates a structural invariant."""


class TunableSettingsError(FISError):
    """Raised when tunable settings reference fields the target FIS does not have."""


class PipelineError(RuntimeError):
    """Raised when a tuning stage fails; carries the stage name."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"Stage '{stage}' failed: {message}")
        self.stage = stage
