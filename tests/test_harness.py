import math

import numpy as np
import pytest
import scipy.linalg

from salesman.config import ExperimentConfig
from salesman.errors import ConfigurationError, DecompositionFailure
from salesman.harness import AgreementStatistics, ExperimentHarness, costs_agree
from salesman.matrix import tour_cost, validate_tour


def _fast_config(**kw) -> ExperimentConfig:
    base = dict(trials=6, node_count=4, seed=1, embedding_steps=40, progress_every=0)
    base.update(kw)
    return ExperimentConfig(**base)


def test_exact_is_lower_bound_and_costs_round_trip():
    harness = ExperimentHarness(_fast_config(trials=8), keep_trials=True)
    stats = harness.run()
    assert stats.trials_run == 8
    assert len(harness.trials) == 8
    for trial in harness.trials:
        d = trial.matrix
        validate_tour(trial.exact.tour, 4)
        assert tour_cost(d, trial.exact.tour) == pytest.approx(trial.exact.cost)
        assert set(trial.outcomes) == set(harness.config.heuristics)
        for name, outcome in trial.outcomes.items():
            validate_tour(outcome.tour, 4)
            assert tour_cost(d, outcome.tour) == pytest.approx(outcome.cost)
            assert trial.exact.cost <= outcome.cost + 1e-9
            assert outcome.agrees == costs_agree(outcome.cost, trial.exact.cost)


def test_fixed_seed_runs_are_identical():
    a = ExperimentHarness(_fast_config()).run()
    b = ExperimentHarness(_fast_config()).run()
    assert a.trials_run == b.trials_run
    assert a.agreement_counts == b.agreement_counts
    assert a.fractions() == b.fractions()


def test_different_seed_changes_matrices():
    h1 = ExperimentHarness(_fast_config(trials=3, heuristics="nearest_neighbor"), keep_trials=True)
    h2 = ExperimentHarness(_fast_config(trials=3, heuristics="nearest_neighbor", seed=2), keep_trials=True)
    h1.run(); h2.run()
    assert [t.matrix for t in h1.trials] != [t.matrix for t in h2.trials]


def test_parallel_matches_serial():
    kw = dict(trials=6, heuristics="nearest_neighbor,pagerank,spectral,spectral_rank")
    serial = ExperimentHarness(_fast_config(**kw)).run()
    parallel = ExperimentHarness(_fast_config(workers=2, **kw)).run()
    assert serial.trials_run == parallel.trials_run == 6
    assert serial.agreement_counts == parallel.agreement_counts


def test_debug_mode_uses_reference_matrix():
    events = []
    conf = _fast_config(trials=2, debug=True, heuristics="nearest_neighbor,pagerank",
                        observer=lambda e, p: events.append(e))
    harness = ExperimentHarness(conf, keep_trials=True)
    stats = harness.run()
    assert all(t.exact.cost == 97 for t in harness.trials)
    assert stats.agreement_counts["nearest_neighbor"] == 2
    assert events.count("trial") == 2
    assert "matrix" in events and "exact" in events


def test_progress_hook_sees_every_trial():
    seen = []
    ExperimentHarness(_fast_config(trials=4, heuristics="pagerank"), progress=lambda d, t: seen.append((d, t))).run()
    assert seen == [(1, 4), (2, 4), (3, 4), (4, 4)]


def test_decomposition_failure_aborts_run(monkeypatch):
    def _boom(*args, **kwargs):
        raise np.linalg.LinAlgError("did not converge")

    monkeypatch.setattr(scipy.linalg, "eig", _boom)
    with pytest.raises(DecompositionFailure):
        ExperimentHarness(_fast_config(trials=3, heuristics="nearest_neighbor,spectral")).run()


def test_costs_agree_rounds_integral_costs():
    assert costs_agree(97.00000000001, 97.0)
    assert not costs_agree(98.0, 97.0)
    assert costs_agree(0.1 + 0.2, 0.3, integral=False)
    assert not costs_agree(0.31, 0.3, integral=False)


def test_statistics_merge_and_fractions():
    a = AgreementStatistics(("x", "y"), trials_run=4, agreement_counts={"x": 2, "y": 4})
    b = AgreementStatistics(("x", "y"), trials_run=4, agreement_counts={"x": 1, "y": 0})
    a.merge(b)
    assert a.trials_run == 8
    assert a.fractions() == {"x": 3 / 8, "y": 0.5}
    assert [r["heuristic"] for r in a.as_rows()] == ["x", "y"]
    empty = AgreementStatistics(("x",))
    assert math.isnan(empty.fractions()["x"])


@pytest.mark.parametrize("kw", [
    {"node_count": 0},
    {"node_count": 11},
    {"damping": 1.5},
    {"workers": 0},
    {"distance_low": 5, "distance_high": 2},
    {"distance_low": 0},
    {"pagerank_max_iter": 0, "heuristics": "pagerank"},
    {"debug": True, "node_count": 6},
])
def test_bad_configuration_rejected_before_solving(kw):
    with pytest.raises(ConfigurationError):
        ExperimentHarness(_fast_config(**kw))


def test_run_node_count_override():
    harness = ExperimentHarness(_fast_config(heuristics="nearest_neighbor"), keep_trials=True)
    harness.run(trial_count=2, node_count=5)
    assert all(t.matrix.size == 5 for t in harness.trials)


def test_debug_node_count_override_rejected():
    harness = ExperimentHarness(_fast_config(trials=1, debug=True, heuristics="nearest_neighbor"))
    with pytest.raises(ConfigurationError):
        harness.run(trial_count=1, node_count=6)
