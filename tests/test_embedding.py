import numpy as np
import pytest
import torch

from salesman.config import ExperimentConfig
from salesman.embedding import (
    EmbeddingHeuristic,
    ParameterSet,
    euclidean_distances,
    pair_encoding,
    train_momentum,
)
from salesman.matrix import DistanceMatrix, tour_cost, validate_tour


def _random_matrix(seed: int = 5) -> DistanceMatrix:
    return DistanceMatrix.random(4, np.random.default_rng(seed))


def test_frozen_block_is_never_updated():
    params = ParameterSet()
    A = params.add("A", np.eye(3), trainable=False)
    w = params.add("w", np.ones(3))

    def loss_fn():
        return torch.sum((A @ w - 5.0) ** 2)

    before_a = params.numpy("A")
    before_w = params.numpy("w")
    train_momentum(params, loss_fn, steps=5, threshold=0.0, momentum=0.3, lr=0.3)
    assert np.array_equal(params.numpy("A"), before_a)
    assert not np.array_equal(params.numpy("w"), before_w)
    assert [name for name, _ in params.trainable()] == ["w"]


def test_step_norm_is_clipped_to_learning_rate():
    params = ParameterSet()
    w = params.add("w", np.full(4, 10.0))
    before = params.numpy("w")
    train_momentum(params, lambda: torch.sum(w ** 2), steps=1, threshold=0.0, momentum=0.0, lr=0.1)
    step = params.numpy("w") - before
    assert np.linalg.norm(step) == pytest.approx(0.1)


def test_pair_encoding_marks_both_endpoints():
    enc = pair_encoding(3)
    assert enc.shape == (9, 3)
    assert enc[0 * 3 + 2].tolist() == [1.0, 0.0, 1.0]
    assert enc[1 * 3 + 1].tolist() == [0.0, 1.0, 0.0]


def test_euclidean_distances():
    out = euclidean_distances(np.array([[0.0, 0.0], [3.0, 4.0]]))
    assert out[0, 1] == pytest.approx(5.0)
    assert out[1, 0] == pytest.approx(5.0)
    assert out[0, 0] == 0.0


def test_pairwise_loss_tail_below_head():
    conf = ExperimentConfig(node_count=4, embedding_variant="pairwise", embedding_steps=200, seed=3)
    h = EmbeddingHeuristic(conf, rng=np.random.default_rng(3))
    h.solve(_random_matrix())
    losses = h.last_losses
    assert len(losses) >= 20
    assert np.mean(losses[-10:]) < np.mean(losses[:10])


@pytest.mark.parametrize("variant", ["pairwise", "autoencoder"])
def test_embedding_heuristic_returns_valid_tour(variant):
    conf = ExperimentConfig(node_count=4, embedding_variant=variant, embedding_steps=64)
    d = _random_matrix(9)
    h = EmbeddingHeuristic(conf, rng=np.random.default_rng(0))
    cost, tour = h.solve(d)
    validate_tour(tour, 4)
    assert cost == pytest.approx(tour_cost(d, tour))
    assert 1 <= len(h.last_losses) <= 64
    assert h.last_embedding.shape[0] == 4


def test_autoencoder_embedding_dimension_follows_scale():
    conf = ExperimentConfig(node_count=4, embedding_variant="autoencoder", embedding_scale=2, embedding_steps=4)
    h = EmbeddingHeuristic(conf, rng=np.random.default_rng(0))
    h.solve(_random_matrix())
    assert h.last_embedding.shape == (4, 8)


def test_same_seed_same_result():
    conf = ExperimentConfig(node_count=4, embedding_steps=50)
    d = _random_matrix(2)
    h1 = EmbeddingHeuristic(conf, rng=np.random.default_rng(42))
    h2 = EmbeddingHeuristic(conf, rng=np.random.default_rng(42))
    assert h1.solve(d) == h2.solve(d)
    assert h1.last_losses == h2.last_losses


@pytest.mark.parametrize("variant", ["pairwise", "autoencoder"])
def test_read_only_matrix_raises_no_tensor_warning(variant):
    import warnings

    conf = ExperimentConfig(node_count=4, embedding_variant=variant, embedding_steps=4)
    h = EmbeddingHeuristic(conf, rng=np.random.default_rng(0))
    with warnings.catch_warnings():
        warnings.filterwarnings("error", message=".*not writable.*")
        h.solve(_random_matrix())
