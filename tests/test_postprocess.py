"""
Tests for rule merging, output naming and the rule report.
"""

import pytest

from t2fis.fis import Rule, Variable
from t2fis.membership import ConstantMF, TriangularMF
from t2fis.postprocess import format_rules, merge_rules, name_output_mfs, postprocess, rules_to_dataframe, rules_to_markdown


def _output(values):
    return Variable(name="forecast", range=(-1.0, 2.0), mfs=[ConstantMF(v) for v in values])


class TestNaming:

    def test_one_per_bin(self):
        assert name_output_mfs(_output([0.0, 0.25, 0.5, 0.75, 1.0])) == [
            "Critical_Low", "Low", "Medium", "High", "Peak",
        ]

    def test_edges_take_lowest_bin(self):
        assert name_output_mfs(_output([0.2, 0.4, 0.6, 0.8])) == ["Critical_Low", "Low", "Medium", "High"]

    def test_collisions_get_suffixes(self):
        assert name_output_mfs(_output([0.1, 0.5, 0.15, 0.05])) == [
            "Critical_Low", "Medium", "Critical_Low_2", "Critical_Low_3",
        ]

    def test_out_of_range_values(self):
        assert name_output_mfs(_output([-0.3, 1.4])) == ["Critical_Low", "Peak"]

    def test_uses_representative_value(self):
        out = Variable(name="y", range=(0.0, 1.0), mfs=[TriangularMF(0.0, 0.9, 1.0)])
        assert name_output_mfs(out) == ["Peak"]


def test_merge_keeps_everything():
    tuned = [Rule((1, 0), 1), Rule((2, 2), 2)]
    original = [Rule((1, 0), 1), Rule((1, 1), 2), Rule((2, 1), 1)]
    merged = merge_rules(tuned, original)
    assert len(merged) == 5
    assert merged[:2] == tuned
    assert merged[2:] == original


class TestReport:

    def test_rule_line(self, hand_fis):
        fis = hand_fis.with_rules([Rule((1,), 1), Rule((2,), 2, 0.5)])
        assert format_rules(fis) == [
            "1. IF x is low THEN y is Low (weight 1.0)",
            "2. IF x is high THEN y is Peak (weight 0.5)",
        ]

    def test_and_join_and_dont_care(self, small_fis):
        fis = small_fis.with_rules([Rule((1, 0, 2), 3), Rule((0, 0, 0), 1)])
        lines = format_rules(fis, ["a", "b", "c", "d", "e", "f", "g", "h"])
        assert lines[0] == "1. IF lag1 is mf1 AND wind_speed is mf2 THEN forecast is c (weight 1.0)"
        assert lines[1] == "2. IF (any input) THEN forecast is a (weight 1.0)"

    def test_dataframe(self, hand_fis):
        df = rules_to_dataframe(hand_fis)
        assert list(df.columns) == ["rule_id", "x", "consequent", "consequent_value", "weight"]
        assert df["x"].tolist() == ["low", "high"]
        assert df["consequent"].tolist() == ["Low", "Peak"]
        assert df["consequent_value"].tolist() == pytest.approx([0.3, 0.9])

    def test_markdown(self, hand_fis):
        md = rules_to_markdown(hand_fis)
        assert md.startswith("# Rules: hand")
        assert "## Rules" in md
        assert "1. IF x is low THEN y is Low (weight 1.0)" in md


def test_postprocess(small_fis):
    tuned = small_fis.with_rules([Rule((2, 2, 2), 8)])
    post = postprocess(tuned, small_fis.rules)
    assert post.fis.num_rules == 1 + small_fis.num_rules
    assert post.fis.rules[0] == Rule((2, 2, 2), 8)
    assert post.output_names[0] == "Critical_Low"
    assert post.output_names[-1] == "Peak"
    assert len(post.report) == post.fis.num_rules
    assert tuned.num_rules == 1
