"""
Population and connectivity generator for the Izhikevich network.

Mixed excitatory / inhibitory population (Izhikevich 2003, Fig 3):
  Excitatory (regular spiking -> chattering):
    a = 0.02, b = 0.2, c = -65 + 15 r^2, d = 8 - 6 r^2
  Inhibitory (fast spiking -> low-threshold spiking):
    a = 0.02 + 0.08 r, b = 0.25 - 0.05 r, c = -65, d = 2
  with one r ~ U[0, 1) per neuron.

All neurons start at v = -65 mV, u = b * v.

Index identity is fixed at creation: indices [0, n_exc) are excitatory,
[n_exc, n_exc + n_inh) inhibitory, and the same index addresses the
connectivity matrix, the spike vector and the history buffer.

Connectivity: dense (N, N) matrix, weights[row, col] is the weight from
presynaptic col onto postsynaptic row. Sign depends only on the column's
class:
  excitatory column:  0.5 r  in [0, 0.5)
  inhibitory column: -1.0 r  in (-1, 0]
Self-connections are ordinary entries. Static network, no plasticity.
"""

import logging

import numpy as np

from models.izhikevich import NEURON_DTYPE, make_neuron


logger = logging.getLogger(__name__)

V_INIT = -65.0

# Excitatory parameters
EXC_DECAY_RATE = 0.02
EXC_SENSITIVITY = 0.2
EXC_V_RESET_SPREAD = 15.0
EXC_U_RESET_BASE = 8.0
EXC_U_RESET_SPREAD = 6.0

# Inhibitory parameters
INH_DECAY_RATE_BASE = 0.02
INH_DECAY_RATE_SPREAD = 0.08
INH_SENSITIVITY_BASE = 0.25
INH_SENSITIVITY_SPREAD = 0.05
INH_U_RESET = 2.0

# Weight scales
EXC_WEIGHT_SCALE = 0.5
INH_WEIGHT_SCALE = -1.0


def _resolve_rng(rng):
    if rng is None:
        return np.random.default_rng()
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def excitatory_neurons(n, rng=None):
    """Sample `n` excitatory neurons.

    Parameters
    ----------
    n : int
    rng : np.random.Generator or int, optional
        Generator or seed.

    Returns
    -------
    neurons : np.ndarray (n,) of NEURON_DTYPE
    """
    rng = _resolve_rng(rng)
    r2 = rng.random(n) ** 2

    neurons = np.zeros(n, dtype=NEURON_DTYPE)
    neurons['decay_rate'] = EXC_DECAY_RATE
    neurons['sensitivity'] = EXC_SENSITIVITY
    neurons['v'] = V_INIT
    neurons['v_reset'] = V_INIT + EXC_V_RESET_SPREAD * r2
    neurons['u_reset'] = EXC_U_RESET_BASE - EXC_U_RESET_SPREAD * r2
    neurons['u'] = neurons['sensitivity'] * neurons['v']
    return neurons


def inhibitory_neurons(n, rng=None):
    """Sample `n` inhibitory neurons. Same return layout as excitatory_neurons."""
    rng = _resolve_rng(rng)
    r = rng.random(n)

    neurons = np.zeros(n, dtype=NEURON_DTYPE)
    neurons['decay_rate'] = INH_DECAY_RATE_BASE + INH_DECAY_RATE_SPREAD * r
    neurons['sensitivity'] = INH_SENSITIVITY_BASE - INH_SENSITIVITY_SPREAD * r
    neurons['v'] = V_INIT
    neurons['v_reset'] = V_INIT
    neurons['u_reset'] = INH_U_RESET
    neurons['u'] = neurons['sensitivity'] * neurons['v']
    return neurons


def is_excitatory_mask(n_excitatory, n_inhibitory):
    """Boolean mask over population indices, True for excitatory neurons."""
    mask = np.zeros(n_excitatory + n_inhibitory, dtype=bool)
    mask[:n_excitatory] = True
    return mask


def connectivity(n_excitatory, n_inhibitory, rng=None, dtype=np.float32):
    """Build the dense weight matrix.

    Every entry is an independent U[0, 1) draw scaled by its column's class.

    Returns
    -------
    weights : np.ndarray (N, N)
        weights[row, col] is the weight from neuron col onto neuron row.
    """
    rng = _resolve_rng(rng)
    n = n_excitatory + n_inhibitory

    column_scale = np.where(is_excitatory_mask(n_excitatory, n_inhibitory),
                            EXC_WEIGHT_SCALE, INH_WEIGHT_SCALE).astype(dtype)
    # Draw in the target dtype so the cast cannot round onto an open bound
    weights = rng.random((n, n), dtype=dtype) * column_scale[np.newaxis, :]
    return weights


def generate(n_excitatory, n_inhibitory, rng=None):
    """Build a population and its connectivity matrix.

    Parameters
    ----------
    n_excitatory : int
        Number of excitatory neurons.
    n_inhibitory : int
        Number of inhibitory neurons.
    rng : np.random.Generator or int, optional
        Generator or seed. Neuron parameters are drawn before weights.

    Returns
    -------
    population : np.ndarray (N,) of NEURON_DTYPE
    weights : np.ndarray (N, N) float32
    """
    rng = _resolve_rng(rng)
    population = np.concatenate([
        excitatory_neurons(n_excitatory, rng),
        inhibitory_neurons(n_inhibitory, rng),
    ])
    weights = connectivity(n_excitatory, n_inhibitory, rng)

    logger.debug("Generated %d excitatory + %d inhibitory neurons",
                 n_excitatory, n_inhibitory)
    return population, weights


def fixed_trio():
    """Three hand-set neurons for smoke runs and hand-checked steps.

    All start at v = -60 mV, u = -12 with decay 0.02 and v_reset -65.
    """
    return np.stack([
        make_neuron(0.02, 2.0, -65.0, 2.0, -60.0, -60.0 * 0.2),
        make_neuron(0.02, 0.2, -65.0, 8.0, -60.0, -60.0 * 0.2),
        make_neuron(0.02, 0.2, -65.0, 2.0, -60.0, -60.0 * 0.2),
    ])


def connectivity_stats(weights, n_excitatory):
    """Summary of the weight matrix for logging."""
    exc = weights[:, :n_excitatory]
    inh = weights[:, n_excitatory:]
    return {
        'n_neurons': weights.shape[0],
        'mean_excitatory_weight': float(exc.mean()) if exc.size else 0.0,
        'mean_inhibitory_weight': float(inh.mean()) if inh.size else 0.0,
        'mean_net_row_input': float(weights.sum(axis=1).mean()),
    }
