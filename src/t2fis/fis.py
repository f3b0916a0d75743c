"""
t2fis.fis

Data structures for a type-2 Sugeno fuzzy inference system.

  - Variable: name + closed numeric range + ordered MFs (order = index used by rules)
  - Rule:     antecedent indices (0 = don't care, k = 1-based MF index),
              1-based consequent index, weight in [0, 1]
  - FIS:      ordered inputs (Type2MF), one output (type-1 shapes), ordered rules

Invariants are checked at construction time, so an FIS that exists is always
structurally valid. Instances are treated as immutable: every "edit" helper
returns a new FIS, which lets each tuning stage keep its own snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from .errors import FISStructureError
from .membership import MembershipFunction, Type2MF, make_mf
from .utils import read_json, write_json

AND_METHODS = ("prod", "min")


@dataclass(frozen=True)
class Variable:
    name: str
    range: Tuple[float, float]
    mfs: Tuple[Any, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "range", (float(self.range[0]), float(self.range[1])))
        object.__setattr__(self, "mfs", tuple(self.mfs))
        lo, hi = self.range
        if not lo < hi:
            raise FISStructureError(f"Variable '{self.name}': range must be ascending, got {self.range}")

    @property
    def num_mfs(self) -> int:
        return len(self.mfs)

    def with_mfs(self, mfs: Sequence[Any]) -> "Variable":
        return Variable(name=self.name, range=self.range, mfs=tuple(mfs))


@dataclass(frozen=True)
class Rule:
    antecedent: Tuple[int, ...]
    consequent: int
    weight: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "antecedent", tuple(int(a) for a in self.antecedent))
        object.__setattr__(self, "consequent", int(self.consequent))
        object.__setattr__(self, "weight", float(self.weight))
        if not (0.0 <= self.weight <= 1.0):
            raise FISStructureError(f"Rule weight must be in [0, 1], got {self.weight}")

    @property
    def is_empty(self) -> bool:
        """True when every antecedent entry is 'don't care'."""
        return not any(self.antecedent)


@dataclass(frozen=True)
class FIS:
    """
    Type-2 Sugeno FIS.

    Inputs carry Type2MF membership functions; the output carries type-1 shapes
    whose representative values act as Sugeno consequent singletons.
    """
    name: str
    inputs: Tuple[Variable, ...]
    output: Variable
    rules: Tuple[Rule, ...] = field(default=())
    and_method: str = "prod"

    def __post_init__(self):
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "rules", tuple(self.rules))
        if self.and_method not in AND_METHODS:
            raise FISStructureError(f"and_method must be one of {AND_METHODS}, got '{self.and_method}'")
        for var in self.inputs:
            for mf in var.mfs:
                if not isinstance(mf, Type2MF):
                    raise FISStructureError(f"Input '{var.name}' MFs must be Type2MF instances")
        for mf in self.output.mfs:
            if not isinstance(mf, MembershipFunction):
                raise FISStructureError(f"Output '{self.output.name}' MFs must be type-1 shapes")
        for i, rule in enumerate(self.rules, start=1):
            self._check_rule(i, rule)

    def _check_rule(self, idx: int, rule: Rule) -> None:
        if len(rule.antecedent) != len(self.inputs):
            raise FISStructureError(
                f"Rule {idx}: antecedent has {len(rule.antecedent)} entries, FIS has {len(self.inputs)} inputs"
            )
        for var, a in zip(self.inputs, rule.antecedent):
            if not (0 <= a <= var.num_mfs):
                raise FISStructureError(
                    f"Rule {idx}: antecedent index {a} out of range [0, {var.num_mfs}] for input '{var.name}'"
                )
        if not (1 <= rule.consequent <= self.output.num_mfs):
            raise FISStructureError(
                f"Rule {idx}: consequent index {rule.consequent} out of range [1, {self.output.num_mfs}]"
            )

    @property
    def num_inputs(self) -> int:
        return len(self.inputs)

    @property
    def num_rules(self) -> int:
        return len(self.rules)

    @property
    def input_names(self) -> List[str]:
        return [v.name for v in self.inputs]

    def with_rules(self, rules: Sequence[Rule]) -> "FIS":
        return FIS(name=self.name, inputs=self.inputs, output=self.output, rules=tuple(rules),
                   and_method=self.and_method)

    def with_variables(self, inputs: Sequence[Variable], output: Variable) -> "FIS":
        return FIS(name=self.name, inputs=tuple(inputs), output=output, rules=self.rules,
                   and_method=self.and_method)

    def renamed(self, name: str) -> "FIS":
        return FIS(name=name, inputs=self.inputs, output=self.output, rules=self.rules,
                   and_method=self.and_method)

    def copy(self) -> "FIS":
        # Every component is frozen, so a shallow rebuild is an independent snapshot.
        return self.renamed(self.name)


# --------------------------------------------------------------------------------------
# Serialization
# --------------------------------------------------------------------------------------

def _mf_to_dict(mf: MembershipFunction) -> Dict[str, Any]:
    return {"kind": mf.kind, "params": [float(p) for p in mf.params]}


def fis_to_dict(fis: FIS) -> Dict[str, Any]:
    """
    JSON-safe representation of an FIS.
    """
    inputs = []
    for var in fis.inputs:
        mfs = []
        for mf in var.mfs:
            d = _mf_to_dict(mf.upper)
            d.update(
                {
                    "name": mf.name,
                    "lower_scale": float(mf.lower_scale),
                    "lower_lag": [float(v) for v in mf.lower_lag],
                }
            )
            mfs.append(d)
        inputs.append({"name": var.name, "range": list(var.range), "mfs": mfs})

    output = {
        "name": fis.output.name,
        "range": list(fis.output.range),
        "mfs": [_mf_to_dict(mf) for mf in fis.output.mfs],
    }
    rules = [
        {"antecedent": list(r.antecedent), "consequent": r.consequent, "weight": r.weight}
        for r in fis.rules
    ]
    return {
        "name": fis.name,
        "type": "sugeno-type2",
        "and_method": fis.and_method,
        "inputs": inputs,
        "output": output,
        "rules": rules,
    }


def fis_from_dict(obj: Dict[str, Any]) -> FIS:
    try:
        inputs = []
        for v in obj["inputs"]:
            mfs = [
                Type2MF(
                    upper=make_mf(m["kind"], m["params"]),
                    lower_scale=float(m.get("lower_scale", 1.0)),
                    lower_lag=tuple(m.get("lower_lag", (0.0, 0.0))),
                    name=m.get("name", ""),
                )
                for m in v["mfs"]
            ]
            inputs.append(Variable(name=v["name"], range=tuple(v["range"]), mfs=mfs))

        o = obj["output"]
        output = Variable(
            name=o["name"],
            range=tuple(o["range"]),
            mfs=[make_mf(m["kind"], m["params"]) for m in o["mfs"]],
        )
        rules = [
            Rule(antecedent=r["antecedent"], consequent=r["consequent"], weight=r.get("weight", 1.0))
            for r in obj.get("rules", [])
        ]
    except KeyError as e:
        raise FISStructureError(f"FIS description missing field: {e}") from e

    return FIS(
        name=obj.get("name", "fis"),
        inputs=inputs,
        output=output,
        rules=rules,
        and_method=obj.get("and_method", "prod"),
    )


def save_fis(fis: FIS, path: str | Path) -> None:
    write_json(fis_to_dict(fis), path, sort_keys=False)


def load_fis(path: str | Path) -> FIS:
    return fis_from_dict(read_json(path))
