"""
Tests for GA options, the fitness function and the tuning engine.
"""

import numpy as np
import pytest

from t2fis.errors import TunableSettingsError
from t2fis.settings import TunableSettings, describe, mask_for_stage
from t2fis.tuning import FitnessFunction, TuneOptions, normalize_option_keys, tune


def _settings(fis, stage, **kwargs):
    return TunableSettings.build(describe(fis), mask_for_stage(stage), fis, **kwargs)


class TestTuneOptions:

    def test_defaults(self):
        opts = TuneOptions()
        assert opts.method == "ga"
        assert opts.population_size == 50
        assert opts.crossover_fraction == 0.8
        assert opts.n_elite == 3

    def test_elite_count_override(self):
        assert TuneOptions(population_size=8).n_elite == 1
        assert TuneOptions(population_size=8, elite_count=2).n_elite == 2

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"crossover_fraction": 1.5},
            {"method": "pso"},
            {"optimization_type": "pruning"},
            {"population_size": 1},
            {"max_generations": 0},
            {"metric": "r2"},
            {"degenerate_penalty": float("inf")},
            {"elite_count": 50},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            TuneOptions(**kwargs)

    def test_from_dict_aliases(self):
        opts = TuneOptions.from_dict(
            {"PopulationSize": 10, "MaxGenerations": 5, "OptimizationType": "learning", "NumMaxRules": 12}
        )
        assert opts.population_size == 10
        assert opts.max_generations == 5
        assert opts.optimization_type == "learning"
        assert opts.num_max_rules == 12

    def test_from_dict_overrides_skip_none(self):
        opts = TuneOptions.from_dict({"population_size": 10}, population_size=None, max_generations=4)
        assert opts.population_size == 10
        assert opts.max_generations == 4

    def test_from_dict_unknown_key(self):
        with pytest.raises(ValueError) as exc_info:
            TuneOptions.from_dict({"Generations": 5})
        assert "Unknown tuning option" in str(exc_info.value)

    def test_from_dict_same_field_twice(self):
        with pytest.raises(ValueError) as exc_info:
            TuneOptions.from_dict({"MaxGenerations": 5, "max_generations": 7})
        assert "given twice" in str(exc_info.value)

    def test_normalize_option_keys(self):
        assert normalize_option_keys({"PopulationSize": 8, "metric": "mae"}) == {
            "population_size": 8,
            "metric": "mae",
        }
        assert normalize_option_keys(None) == {}


class TestFitness:

    def test_aggregation(self, small_fis):
        s = _settings(small_fis, "tuning")
        fit = FitnessFunction(small_fis, s, np.zeros((4, 3)), np.zeros(4), degenerate_penalty=100.0)
        assert fit.score(np.full(4, 0.1)) == pytest.approx(0.1)
        assert fit.score(np.array([0.1, 0.1, np.nan, np.nan])) == pytest.approx(0.1 + 100.0 * 0.5)
        assert fit.score(np.full(4, np.nan)) == 100.0

    def test_metric_choice(self, small_fis):
        s = _settings(small_fis, "tuning")
        fit = FitnessFunction(small_fis, s, np.zeros((2, 3)), np.zeros(2), metric="mae")
        assert fit.score(np.array([0.2, -0.4])) == pytest.approx(0.3)

    def test_always_finite(self, small_fis, small_data):
        X, y = small_data
        s = _settings(small_fis, "learning", num_max_rules=8)
        fit = FitnessFunction(small_fis, s, X, y)
        rng = np.random.default_rng(0)
        for _ in range(20):
            genome = s.clip(rng.uniform(s.lower_bounds, s.upper_bounds))
            assert np.isfinite(fit(genome))
        # every rule dropped -> empty rule base -> penalty, not an exception
        assert fit(np.zeros(len(s))) == fit.penalty

    def test_data_mismatch(self, small_fis):
        s = _settings(small_fis, "tuning")
        with pytest.raises(ValueError):
            FitnessFunction(small_fis, s, np.zeros((4, 3)), np.zeros(5))


class TestTune:

    def test_reproducible(self, small_fis, small_data, fast_ga):
        X, y = small_data
        s = _settings(small_fis, "tuning")
        opts = TuneOptions(optimization_type="tuning", **fast_ga)
        a = tune(small_fis, s, X, y, opts, seed=7)
        b = tune(small_fis, s, X, y, opts, seed=7)
        np.testing.assert_array_equal(a.best_genome, b.best_genome)
        assert a.fis == b.fis
        assert a.history == b.history

    def test_never_worse_than_seed(self, small_fis, small_data, fast_ga):
        X, y = small_data
        s = _settings(small_fis, "advanced")
        opts = TuneOptions(optimization_type="tuning", **fast_ga)
        seed_fitness = FitnessFunction(small_fis, s, X, y)(s.encode(small_fis))
        result = tune(small_fis, s, X, y, opts, seed=0)
        assert result.best_fitness <= seed_fitness
        assert all(later <= earlier for earlier, later in zip(result.history, result.history[1:]))
        assert result.generations == len(result.history) - 1

    def test_result_is_new_fis(self, small_fis, small_data, fast_ga):
        X, y = small_data
        snapshot = small_fis.copy()
        s = _settings(small_fis, "tuning")
        result = tune(small_fis, s, X, y, TuneOptions(optimization_type="tuning", **fast_ga))
        assert small_fis == snapshot
        assert result.descriptor == describe(result.fis)

    def test_rule_learning(self, small_fis, small_data, fast_ga):
        X, y = small_data
        s = _settings(small_fis, "learning", num_max_rules=6)
        result = tune(small_fis, s, X, y, TuneOptions(optimization_type="learning", num_max_rules=6, **fast_ga))
        assert result.fis.num_rules <= 6
        assert result.fis.inputs == small_fis.inputs

    def test_option_settings_mismatch(self, small_fis, small_data, fast_ga):
        X, y = small_data
        s = _settings(small_fis, "tuning")
        with pytest.raises(TunableSettingsError):
            tune(small_fis, s, X, y, TuneOptions(optimization_type="learning", **fast_ga))

    def test_stall_stops_early(self, small_fis, small_data):
        X, y = small_data
        s = _settings(small_fis, "tuning")
        opts = TuneOptions(optimization_type="tuning", population_size=6, max_generations=50,
                           max_stall_generations=1, function_tolerance=1e9)
        result = tune(small_fis, s, X, y, opts)
        assert result.generations == 1

    def test_parallel_matches_serial(self, small_fis, small_data, fast_ga):
        X, y = small_data
        s = _settings(small_fis, "tuning")
        serial = tune(small_fis, s, X, y, TuneOptions(optimization_type="tuning", **fast_ga), seed=3)
        parallel = tune(
            small_fis, s, X, y,
            TuneOptions(optimization_type="tuning", use_parallel=True, n_jobs=2, **fast_ga),
            seed=3,
        )
        assert serial.history == parallel.history
        assert serial.fis == parallel.fis
