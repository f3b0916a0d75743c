"""
t2fis.postprocess

Turn a tuned FIS into its final, human-readable form.

Steps:
  - Rule merge: final rules = tuned rules followed by the original grid rules
    (no deduplication, no weight renormalization).
  - Output naming: each output MF's representative value is mapped into one of
    five fixed bins over the normalized [0, 1] output space:

      Critical_Low [0.0, 0.2]   Low [0.2, 0.4]   Medium [0.4, 0.6]
      High         [0.6, 0.8]   Peak [0.8, 1.0]

    Edges are inclusive on both ends; a value on an edge takes the first
    (lowest) matching bin. Repeated names get a running suffix: Low, Low_2, Low_3.
  - Rule report: one line per rule,
      "3. IF lag2 is mf1 AND humidity is mf2 THEN forecast is High (weight 1.0)"

Naming does NOT change the model. It only changes representation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .fis import FIS, Rule, Variable

OUTPUT_BINS: Tuple[Tuple[str, float, float], ...] = (
    ("Critical_Low", 0.0, 0.2),
    ("Low", 0.2, 0.4),
    ("Medium", 0.4, 0.6),
    ("High", 0.6, 0.8),
    ("Peak", 0.8, 1.0),
)


def merge_rules(tuned: Sequence[Rule], original: Sequence[Rule]) -> List[Rule]:
    # Kept literal: duplicates between the two sets stay, weights are not rescaled.
    return list(tuned) + list(original)


def _level_from_center(center: float, bins: Sequence[Tuple[str, float, float]] = OUTPUT_BINS) -> str:
    for name, lo, hi in bins:
        if lo <= center <= hi:
            return name
    # outside [0, 1]: nearest end bin
    return bins[0][0] if center < bins[0][1] else bins[-1][0]


def name_output_mfs(output: Variable, bins: Sequence[Tuple[str, float, float]] = OUTPUT_BINS) -> List[str]:
    """
    Semantic names for the output MFs, in MF order.
    """
    counts: Dict[str, int] = {}
    names = []
    for mf in output.mfs:
        level = _level_from_center(mf.representative_value(), bins)
        counts[level] = counts.get(level, 0) + 1
        names.append(level if counts[level] == 1 else f"{level}_{counts[level]}")
    return names


def _input_mf_label(var: Variable, idx: int) -> str:
    mf = var.mfs[idx - 1]
    return mf.name or f"mf{idx}"


def rule_clauses(fis: FIS, rule: Rule) -> List[str]:
    return [
        f"{var.name} is {_input_mf_label(var, a)}"
        for var, a in zip(fis.inputs, rule.antecedent)
        if a != 0
    ]


def format_rules(fis: FIS, output_names: Optional[Sequence[str]] = None) -> List[str]:
    """
    Render the rule table, one line per rule.
    """
    names = list(output_names) if output_names is not None else name_output_mfs(fis.output)
    lines = []
    for i, rule in enumerate(fis.rules, start=1):
        clauses = " AND ".join(rule_clauses(fis, rule)) or "(any input)"
        lines.append(
            f"{i}. IF {clauses} THEN {fis.output.name} is {names[rule.consequent - 1]} "
            f"(weight {rule.weight:.1f})"
        )
    return lines


def rules_to_dataframe(fis: FIS, output_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Flatten rules into a DataFrame (one row per rule).

    Columns: rule_id, one column per input (MF label or empty), consequent,
    consequent_value, weight.
    """
    names = list(output_names) if output_names is not None else name_output_mfs(fis.output)
    rows = []
    for i, rule in enumerate(fis.rules, start=1):
        row = {"rule_id": i}
        for var, a in zip(fis.inputs, rule.antecedent):
            row[var.name] = _input_mf_label(var, a) if a else ""
        row["consequent"] = names[rule.consequent - 1]
        row["consequent_value"] = fis.output.mfs[rule.consequent - 1].representative_value()
        row["weight"] = rule.weight
        rows.append(row)
    return pd.DataFrame(rows, columns=["rule_id", *fis.input_names, "consequent", "consequent_value", "weight"])


def rules_to_markdown(fis: FIS, output_names: Optional[Sequence[str]] = None) -> str:
    names = list(output_names) if output_names is not None else name_output_mfs(fis.output)

    lines: List[str] = []
    lines.append(f"# Rules: {fis.name}")
    lines.append("")
    lines.append(f"- Num rules: {fis.num_rules}")
    lines.append(f"- Inputs: {', '.join(fis.input_names)}")
    lines.append(f"- AND method: {fis.and_method}")
    lines.append("")
    lines.append("## Output MFs")
    lines.append("")
    for j, (mf, nm) in enumerate(zip(fis.output.mfs, names), start=1):
        lines.append(f"- {j}: {nm} ({mf.kind}, center={mf.representative_value():.3f})")
    lines.append("")
    lines.append("## Input MFs")
    lines.append("")
    for var in fis.inputs:
        for j, mf in enumerate(var.mfs, start=1):
            params = ", ".join(f"{p:.3f}" for p in mf.upper.params)
            lag = ", ".join(f"{v:.3f}" for v in mf.lower_lag)
            lines.append(
                f"- {var.name}.{_input_mf_label(var, j)}: {mf.kind}({params}), "
                f"lower_scale={mf.lower_scale:.3f}, lower_lag=({lag})"
            )
    lines.append("")
    lines.append("## Rules")
    lines.append("")
    for ln in format_rules(fis, names):
        lines.append(f"- {ln}")
    lines.append("")
    return "\n".join(lines)


@dataclass
class PostProcessed:
    fis: FIS
    output_names: List[str]
    report: List[str]


def postprocess(tuned: FIS, original_rules: Sequence[Rule]) -> PostProcessed:
    """
    Merge rules, name the output MFs and render the rule report.
    """
    final = tuned.with_rules(merge_rules(tuned.rules, original_rules))
    names = name_output_mfs(final.output)
    return PostProcessed(fis=final, output_names=names, report=format_rules(final, names))
