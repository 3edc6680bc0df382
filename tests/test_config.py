import pytest

from salesman import config
from salesman.config import ExperimentConfig
from salesman.errors import ConfigurationError


def test_defaults_match_module_constants():
    conf = ExperimentConfig()
    assert conf.node_count == config.NODE_COUNT
    assert conf.damping == pytest.approx(0.85)
    assert conf.embedding_variant in ("pairwise", "autoencoder")
    assert set(conf.heuristics) <= set(config.HEURISTIC_CHOICES)


def test_aliases_are_normalized():
    conf = ExperimentConfig(heuristics="nn, PageRank,spectral-rank", embedding_variant="neural2",
                            spectral_part="modulus")
    assert conf.heuristics == ("nearest_neighbor", "pagerank", "spectral_rank")
    assert conf.embedding_variant == "pairwise"
    assert conf.spectral_part == "abs"
    assert conf.embedding_loss_threshold == pytest.approx(1e-4)


@pytest.mark.parametrize("kw", [
    {"heuristics": "annealing"},
    {"heuristics": ""},
    {"embedding_variant": "gan"},
    {"spectral_part": "imag"},
])
def test_unknown_options_raise(kw):
    with pytest.raises(ConfigurationError):
        ExperimentConfig(**kw)


def test_from_mapping_ignores_unknown_keys_and_none_overrides():
    conf = ExperimentConfig.from_mapping({"trials": 3, "heuristics": ["pagerank"], "out_dir": "x"},
                                         trials=None, seed=9)
    assert conf.trials == 3
    assert conf.seed == 9
    assert conf.heuristics == ("pagerank",)
    assert conf.as_dict()["heuristics"] == "pagerank"


def test_emit_without_observer_is_noop():
    ExperimentConfig().emit("trial", trial=0)
    seen = []
    ExperimentConfig(observer=lambda e, p: seen.append((e, p))).emit("trial", trial=1)
    assert seen == [("trial", {"trial": 1})]


def test_debug_requires_reference_node_count():
    assert ExperimentConfig(debug=True, node_count=4).validate().debug
    with pytest.raises(ConfigurationError):
        ExperimentConfig(debug=True, node_count=6).validate()
