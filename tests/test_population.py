"""
Tests for population, connectivity and thalamic input generation.
"""
import sys
import os

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.izhikevich import NEURON_DTYPE
from models.thalamic_input import (EXCITATORY_SCALE, INHIBITORY_SCALE, SilentInput,
                                   ThalamicInput, thalamic_input)
from population.generator import (connectivity, connectivity_stats, fixed_trio,
                                  generate, is_excitatory_mask)


N_EXC = 80
N_INH = 20


@pytest.fixture
def network():
    return generate(N_EXC, N_INH, rng=np.random.default_rng(7))


class TestPopulation:

    def test_size_and_dtype(self, network):
        population, weights = network
        assert len(population) == N_EXC + N_INH
        assert population.dtype == NEURON_DTYPE
        assert weights.shape == (N_EXC + N_INH, N_EXC + N_INH)

    def test_excitatory_parameters(self, network):
        exc = network[0][:N_EXC]
        assert np.all(exc['sensitivity'] == np.float32(0.2))
        assert np.all(exc['decay_rate'] == np.float32(0.02))
        assert np.all(exc['v'] == -65.0)
        assert np.all(exc['v_reset'] >= -65.0)
        assert np.all(exc['v_reset'] < -50.0)
        assert np.all(exc['u_reset'] >= 2.0)
        assert np.all(exc['u_reset'] <= 8.0)

    def test_inhibitory_parameters(self, network):
        inh = network[0][N_EXC:]
        assert np.all(inh['decay_rate'] >= np.float32(0.02))
        assert np.all(inh['decay_rate'] <= np.float32(0.10))
        assert np.all(inh['sensitivity'] > np.float32(0.2) - 1e-6)
        assert np.all(inh['sensitivity'] <= np.float32(0.25))
        assert np.all(inh['v_reset'] == -65.0)
        assert np.all(inh['u_reset'] == 2.0)

    def test_recovery_starts_at_rest(self, network):
        population = network[0]
        np.testing.assert_allclose(population['u'],
                                   population['sensitivity'] * population['v'],
                                   rtol=1e-6)

    def test_seed_reproducible(self):
        a_pop, a_w = generate(10, 5, rng=3)
        b_pop, b_w = generate(10, 5, rng=3)
        np.testing.assert_array_equal(a_pop, b_pop)
        np.testing.assert_array_equal(a_w, b_w)

    def test_only_inhibitory(self):
        population, weights = generate(0, 4, rng=1)
        assert len(population) == 4
        assert np.all(weights <= 0.0)

    def test_heterogeneous_draws(self, network):
        exc = network[0][:N_EXC]
        assert len(np.unique(exc['v_reset'])) > 1


class TestConnectivity:

    def test_weight_ranges_by_column_class(self, network):
        weights = network[1]
        exc_cols = weights[:, :N_EXC]
        inh_cols = weights[:, N_EXC:]
        assert np.all(exc_cols >= 0.0) and np.all(exc_cols < 0.5)
        assert np.all(inh_cols > -1.0) and np.all(inh_cols <= 0.0)

    def test_diagonal_is_ordinary_weight(self):
        weights = connectivity(50, 0, rng=11)
        assert np.count_nonzero(np.diag(weights)) > 0

    def test_mask(self):
        mask = is_excitatory_mask(3, 2)
        assert mask.tolist() == [True, True, True, False, False]

    def test_float32(self, network):
        assert network[1].dtype == np.float32

    def test_stats(self, network):
        stats = connectivity_stats(network[1], N_EXC)
        assert stats['n_neurons'] == N_EXC + N_INH
        assert 0.0 <= stats['mean_excitatory_weight'] < 0.5
        assert -1.0 < stats['mean_inhibitory_weight'] <= 0.0


class TestFixedTrio:

    def test_values(self):
        trio = fixed_trio()
        assert len(trio) == 3
        assert np.all(trio['v'] == -60.0)
        np.testing.assert_allclose(trio['u'], -12.0)
        assert trio['sensitivity'].tolist() == pytest.approx([2.0, 0.2, 0.2])
        assert trio['u_reset'].tolist() == pytest.approx([2.0, 8.0, 2.0])


class TestThalamicInput:

    def test_length_and_dtype(self):
        current = thalamic_input(30, 10, rng=np.random.default_rng(0))
        assert current.shape == (40,)
        assert current.dtype == np.float32

    def test_scale_per_class(self):
        rng = np.random.default_rng(0)
        draws = np.stack([thalamic_input(5, 5, rng=rng) for _ in range(4000)])
        exc_std = draws[:, :5].std()
        inh_std = draws[:, 5:].std()
        assert exc_std == pytest.approx(EXCITATORY_SCALE, rel=0.05)
        assert inh_std == pytest.approx(INHIBITORY_SCALE, rel=0.05)
        assert abs(draws.mean()) < 0.1

    def test_resampled_every_step(self):
        stream = ThalamicInput(8, 2, seed=5)
        assert not np.array_equal(stream.next(), stream.next())

    def test_same_seed_same_sequence(self):
        a = ThalamicInput(8, 2, seed=5)
        b = ThalamicInput(8, 2, seed=5)
        for _ in range(5):
            np.testing.assert_array_equal(next(a), next(b))

    def test_silent_input(self):
        assert not SilentInput(3).next().any()
