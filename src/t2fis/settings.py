"""
t2fis.settings

Tunable settings: which parts of an FIS a GA pass may change, and how they map to
a flat chromosome.

Three layers:
  1) SettingsDescriptor  - the in/out "shape" of an FIS (one MFSlot per MF, plus the
                           rule-table dimensions). Computed once by describe(fis) and
                           reusable across stages.
  2) TunableMask         - a stage-scoped, immutable value object saying which fields
                           are free. Built fresh per stage from STAGE_POLICIES.
  3) TunableSettings     - descriptor + mask bound to a concrete FIS: the gene layout
                           (bounds + integer flags) with encode/decode.

Chromosome layouts:
  learning: NumMaxRules blocks of (antecedent_1..antecedent_I, consequent), all integer.
  tuning:   per input MF  -> upper params? lower scale? lower lag(s)?
            per output MF -> params?
            ("?" = present only when the mask leaves that field free)

A descriptor that does not match the FIS it is bound to raises TunableSettingsError:
that is a wiring defect, not a data problem.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .errors import TunableSettingsError
from .fis import FIS, Rule, Variable

OPTIMIZATION_TYPES = ("learning", "tuning")

MIN_LOWER_SCALE = 0.05
MAX_LOWER_LAG = 0.9
MIN_SIGMA_FRACTION = 1e-3


@dataclass(frozen=True)
class MFSlot:
    role: str          # "input" | "output"
    var_index: int
    mf_index: int
    kind: str
    n_params: int


@dataclass(frozen=True)
class SettingsDescriptor:
    """
    In/out descriptors of an FIS, independent of any freeze policy.
    """
    inputs: Tuple[MFSlot, ...]
    outputs: Tuple[MFSlot, ...]
    input_mf_counts: Tuple[int, ...]
    output_mf_count: int

    @property
    def num_inputs(self) -> int:
        return len(self.input_mf_counts)


def describe(fis: FIS) -> SettingsDescriptor:
    ins = tuple(
        MFSlot("input", i, j, mf.kind, len(mf.upper.params))
        for i, var in enumerate(fis.inputs)
        for j, mf in enumerate(var.mfs)
    )
    outs = tuple(
        MFSlot("output", 0, j, mf.kind, len(mf.params))
        for j, mf in enumerate(fis.output.mfs)
    )
    return SettingsDescriptor(
        inputs=ins,
        outputs=outs,
        input_mf_counts=tuple(v.num_mfs for v in fis.inputs),
        output_mf_count=fis.output.num_mfs,
    )


@dataclass(frozen=True)
class TunableMask:
    """
    Which fields a GA pass may change. True = free, False = frozen.
    """
    optimization_type: str
    upper_parameters: bool = True
    lower_scale: bool = True
    lower_lag: bool = True
    output_parameters: bool = True
    asymmetric_lag: bool = True

    def __post_init__(self):
        if self.optimization_type not in OPTIMIZATION_TYPES:
            raise TunableSettingsError(
                f"Unknown optimization type '{self.optimization_type}'. Known: {OPTIMIZATION_TYPES}"
            )


# stage -> {field -> frozen?}
STAGE_POLICIES: Dict[str, Dict[str, Any]] = {
    "learning": {
        "optimization_type": "learning",
        "frozen": {},
    },
    "tuning": {
        "optimization_type": "tuning",
        "asymmetric_lag": True,
        "frozen": {
            "upper_parameters": False,
            "lower_scale": True,
            "lower_lag": True,
            "output_parameters": False,
        },
    },
    "advanced": {
        "optimization_type": "tuning",
        "asymmetric_lag": True,
        "frozen": {
            "upper_parameters": True,
            "lower_scale": False,
            "lower_lag": False,
            "output_parameters": False,
        },
    },
}

STAGES = tuple(STAGE_POLICIES)


def mask_for_stage(stage: str) -> TunableMask:
    """
    Build a fresh TunableMask from the declarative policy table.
    """
    policy = STAGE_POLICIES.get(stage)
    if policy is None:
        raise TunableSettingsError(f"No freeze policy for stage '{stage}'. Known: {list(STAGE_POLICIES)}")
    known = {f.name for f in fields(TunableMask)}
    kwargs: Dict[str, Any] = {"optimization_type": policy["optimization_type"]}
    if "asymmetric_lag" in policy:
        kwargs["asymmetric_lag"] = bool(policy["asymmetric_lag"])
    for name, frozen in policy["frozen"].items():
        if name not in known:
            raise TunableSettingsError(f"Policy for stage '{stage}' names unknown field '{name}'")
        kwargs[name] = not frozen
    return TunableMask(**kwargs)


@dataclass(frozen=True)
class Gene:
    low: float
    high: float
    integer: bool
    # ("rule", r, pos) | ("upper", i, j, p) | ("scale", i, j) | ("lag", i, j, side) | ("output", j, p)
    # side == -1 means symmetric lag (one gene drives both sides)
    target: Tuple[Any, ...]


def _param_bounds(kind: str, p: int, var: Variable) -> Tuple[float, float]:
    lo, hi = var.range
    span = hi - lo
    if kind == "gaussian" and p == 1:
        return (MIN_SIGMA_FRACTION * span, span)
    if kind == "constant":
        return (lo, hi)
    return (lo - span, hi + span)


class TunableSettings:
    """
    Gene layout for one GA pass, bound to the structure of a specific FIS.
    """

    def __init__(
        self,
        descriptor: SettingsDescriptor,
        mask: TunableMask,
        genes: List[Gene],
        num_max_rules: int = 0,
    ):
        self.descriptor = descriptor
        self.mask = mask
        self.genes = list(genes)
        self.num_max_rules = int(num_max_rules)
        self.lower_bounds = np.array([g.low for g in self.genes], dtype=np.float64)
        self.upper_bounds = np.array([g.high for g in self.genes], dtype=np.float64)
        self.integer_mask = np.array([g.integer for g in self.genes], dtype=bool)

    def __len__(self) -> int:
        return len(self.genes)

    @property
    def optimization_type(self) -> str:
        return self.mask.optimization_type

    # ---------- construction ----------

    @classmethod
    def build(
        cls,
        descriptor: SettingsDescriptor,
        mask: TunableMask,
        fis: FIS,
        num_max_rules: Optional[int] = None,
    ) -> "TunableSettings":
        validate_descriptor(descriptor, fis)

        if mask.optimization_type == "learning":
            n_rules = int(num_max_rules or 0)
            if n_rules < 1:
                raise TunableSettingsError("Rule learning needs num_max_rules >= 1")
            genes: List[Gene] = []
            for r in range(n_rules):
                for i, count in enumerate(descriptor.input_mf_counts):
                    genes.append(Gene(0.0, float(count), True, ("rule", r, i)))
                genes.append(
                    Gene(1.0, float(descriptor.output_mf_count), True, ("rule", r, descriptor.num_inputs))
                )
            return cls(descriptor, mask, genes, num_max_rules=n_rules)

        genes = []
        for slot in descriptor.inputs:
            var = fis.inputs[slot.var_index]
            i, j = slot.var_index, slot.mf_index
            if mask.upper_parameters:
                for p in range(slot.n_params):
                    lo, hi = _param_bounds(slot.kind, p, var)
                    genes.append(Gene(lo, hi, False, ("upper", i, j, p)))
            if mask.lower_scale:
                genes.append(Gene(MIN_LOWER_SCALE, 1.0, False, ("scale", i, j)))
            if mask.lower_lag:
                if mask.asymmetric_lag:
                    genes.append(Gene(0.0, MAX_LOWER_LAG, False, ("lag", i, j, 0)))
                    genes.append(Gene(0.0, MAX_LOWER_LAG, False, ("lag", i, j, 1)))
                else:
                    genes.append(Gene(0.0, MAX_LOWER_LAG, False, ("lag", i, j, -1)))
        if mask.output_parameters:
            for slot in descriptor.outputs:
                for p in range(slot.n_params):
                    lo, hi = _param_bounds(slot.kind, p, fis.output)
                    genes.append(Gene(lo, hi, False, ("output", slot.mf_index, p)))

        if not genes:
            raise TunableSettingsError("Tunable mask leaves no free fields; nothing to tune")
        return cls(descriptor, mask, genes)

    # ---------- chromosome <-> FIS ----------

    def clip(self, genome: np.ndarray) -> np.ndarray:
        g = np.clip(np.asarray(genome, dtype=np.float64), self.lower_bounds, self.upper_bounds)
        g[self.integer_mask] = np.round(g[self.integer_mask])
        return g

    def encode(self, fis: FIS) -> np.ndarray:
        if self.optimization_type == "learning":
            k = self.descriptor.num_inputs
            values: List[float] = []
            for r in range(self.num_max_rules):
                if r < fis.num_rules:
                    rule = fis.rules[r]
                    values.extend(float(a) for a in rule.antecedent)
                    values.append(float(rule.consequent))
                else:
                    # padding: an all-"don't care" rule, dropped on decode
                    values.extend([0.0] * k)
                    values.append(1.0)
            return self.clip(np.array(values))

        values = []
        for g in self.genes:
            t = g.target
            if t[0] == "upper":
                values.append(fis.inputs[t[1]].mfs[t[2]].upper.params[t[3]])
            elif t[0] == "scale":
                values.append(fis.inputs[t[1]].mfs[t[2]].lower_scale)
            elif t[0] == "lag":
                lag = fis.inputs[t[1]].mfs[t[2]].lower_lag
                values.append(lag[0] if t[3] == -1 else lag[t[3]])
            else:
                values.append(fis.output.mfs[t[1]].params[t[2]])
        return self.clip(np.array(values, dtype=np.float64))

    def decode(self, genome: np.ndarray, fis: FIS) -> FIS:
        """
        Materialize a genome into a new FIS (the input FIS is left untouched).
        """
        if len(genome) != len(self.genes):
            raise TunableSettingsError(f"Genome length {len(genome)} != settings length {len(self.genes)}")
        if fis.num_inputs != self.descriptor.num_inputs:
            raise TunableSettingsError("Settings were built for a different number of inputs")
        genome = self.clip(genome)
        if self.optimization_type == "learning":
            return fis.with_rules(self._decode_rules(genome))
        return self._decode_params(genome, fis)

    def _decode_rules(self, genome: np.ndarray) -> List[Rule]:
        k = self.descriptor.num_inputs
        block = k + 1
        seen = set()
        rules: List[Rule] = []
        for r in range(self.num_max_rules):
            chunk = genome[r * block:(r + 1) * block].astype(np.int64)
            ant = tuple(int(a) for a in chunk[:k])
            cons = int(chunk[k])
            rule = Rule(antecedent=ant, consequent=cons, weight=1.0)
            if rule.is_empty or (ant, cons) in seen:
                continue
            seen.add((ant, cons))
            rules.append(rule)
        return rules

    def _decode_params(self, genome: np.ndarray, fis: FIS) -> FIS:
        upper = [[list(mf.upper.params) for mf in var.mfs] for var in fis.inputs]
        scale = [[mf.lower_scale for mf in var.mfs] for var in fis.inputs]
        lag = [[list(mf.lower_lag) for mf in var.mfs] for var in fis.inputs]
        out = [list(mf.params) for mf in fis.output.mfs]

        for value, g in zip(genome, self.genes):
            t = g.target
            if t[0] == "upper":
                upper[t[1]][t[2]][t[3]] = float(value)
            elif t[0] == "scale":
                scale[t[1]][t[2]] = float(value)
            elif t[0] == "lag":
                if t[3] == -1:
                    lag[t[1]][t[2]] = [float(value), float(value)]
                else:
                    lag[t[1]][t[2]][t[3]] = float(value)
            else:
                out[t[1]][t[2]] = float(value)

        # Frozen fields are carried over untouched; gene values are already within bounds.
        m = self.mask
        inputs = []
        for i, var in enumerate(fis.inputs):
            mfs = [
                mf.replace(
                    upper=mf.upper.with_params(upper[i][j]) if m.upper_parameters else mf.upper,
                    lower_scale=scale[i][j],
                    lower_lag=tuple(lag[i][j]),
                )
                for j, mf in enumerate(var.mfs)
            ]
            inputs.append(var.with_mfs(mfs))
        if m.output_parameters:
            output = fis.output.with_mfs([mf.with_params(out[j]) for j, mf in enumerate(fis.output.mfs)])
        else:
            output = fis.output
        return fis.with_variables(inputs, output)


def validate_descriptor(descriptor: SettingsDescriptor, fis: FIS) -> None:
    """
    Check that every slot of the descriptor exists on `fis` with the same kind.
    """
    if descriptor.num_inputs != fis.num_inputs:
        raise TunableSettingsError(
            f"Settings describe {descriptor.num_inputs} inputs, FIS '{fis.name}' has {fis.num_inputs}"
        )
    for slot in descriptor.inputs:
        if slot.var_index >= fis.num_inputs or slot.mf_index >= fis.inputs[slot.var_index].num_mfs:
            raise TunableSettingsError(
                f"Settings reference input {slot.var_index + 1} MF {slot.mf_index + 1}, "
                f"which FIS '{fis.name}' does not have"
            )
        mf = fis.inputs[slot.var_index].mfs[slot.mf_index]
        if mf.kind != slot.kind or len(mf.upper.params) != slot.n_params:
            raise TunableSettingsError(
                f"Input {slot.var_index + 1} MF {slot.mf_index + 1}: settings expect '{slot.kind}', "
                f"FIS has '{mf.kind}'"
            )
    for slot in descriptor.outputs:
        if slot.mf_index >= fis.output.num_mfs:
            raise TunableSettingsError(
                f"Settings reference output MF {slot.mf_index + 1}, which FIS '{fis.name}' does not have"
            )
        mf = fis.output.mfs[slot.mf_index]
        if mf.kind != slot.kind or len(mf.params) != slot.n_params:
            raise TunableSettingsError(
                f"Output MF {slot.mf_index + 1}: settings expect '{slot.kind}', FIS has '{mf.kind}'"
            )
