"""
Thalamic background input.

Every neuron receives independent Gaussian noise current each 1 ms step,
scaled per class (Izhikevich 2003 network): 5 for excitatory, 2 for
inhibitory. This is exogenous noise, not a bias, so it is redrawn every
step.
"""

import numpy as np


EXCITATORY_SCALE = 5.0
INHIBITORY_SCALE = 2.0


def thalamic_input(n_excitatory, n_inhibitory, rng=None, dtype=np.float32):
    """Draw one step of thalamic input current.

    Parameters
    ----------
    n_excitatory : int
        Number of excitatory neurons (indices [0, n_excitatory)).
    n_inhibitory : int
        Number of inhibitory neurons (the remaining indices).
    rng : np.random.Generator, optional
        Random number generator for reproducibility.
    dtype : numpy dtype
        Output dtype. float32 matches the neuron buffers.

    Returns
    -------
    current : np.ndarray (n_excitatory + n_inhibitory,)
    """
    if rng is None:
        rng = np.random.default_rng()

    scale = np.concatenate([
        np.full(n_excitatory, EXCITATORY_SCALE),
        np.full(n_inhibitory, INHIBITORY_SCALE),
    ])
    noise = rng.standard_normal(n_excitatory + n_inhibitory)
    return (scale * noise).astype(dtype)


class ThalamicInput:
    """Seeded stream of per-step thalamic input vectors.

    Two instances built with the same seed yield identical sequences, which
    is what backend comparisons rely on.
    """

    def __init__(self, n_excitatory, n_inhibitory, seed=None):
        self.n_excitatory = n_excitatory
        self.n_inhibitory = n_inhibitory
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    @property
    def n_neurons(self):
        return self.n_excitatory + self.n_inhibitory

    def next(self):
        return thalamic_input(self.n_excitatory, self.n_inhibitory, rng=self.rng)

    def __iter__(self):
        return self

    def __next__(self):
        return self.next()


class SilentInput:
    """All-zero input stream, for deterministic hand-checked runs."""

    def __init__(self, n_neurons):
        self.n_neurons = n_neurons

    def next(self):
        return np.zeros(self.n_neurons, dtype=np.float32)

    def __iter__(self):
        return self

    def __next__(self):
        return self.next()
