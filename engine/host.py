"""
Host-parallel step backend.

Per step:
  1. synaptic input, row blocks reduced on the thread pool
  2. total input = thalamic + synaptic
  3. neuron update, index blocks advanced on the thread pool

Each neuron's update reads only its own record and its own input current
and writes only its own output record and spike flag, so blocks need no
synchronisation. A block is a contiguous run of those per-neuron units,
sized so one task amortises the pool overhead. Results come back through
Executor.map, which keeps submission order, and are concatenated so
index i of the output is neuron i.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from engine.backends import StepBackend
from engine.config import DEFAULT_WORKERS
from models.izhikevich import NEURON_DTYPE, step_arrays
from synapses.connection_input import parallel_connection_input, row_blocks


logger = logging.getLogger(__name__)


def _advance_block(neurons, current):
    """Advance one block of neurons. Returns (new records, spike flags)."""
    v, u, fired = step_arrays(neurons['v'], neurons['u'],
                              neurons['decay_rate'], neurons['sensitivity'],
                              neurons['v_reset'], neurons['u_reset'],
                              current)
    updated = neurons.copy()
    updated['v'] = v
    updated['u'] = u
    return updated, fired


def advance_population(population, current, executor, n_chunks):
    """Advance every neuron one step on a thread pool.

    Parameters
    ----------
    population : np.ndarray (N,) of NEURON_DTYPE
        Not modified.
    current : np.ndarray (N,)
        Total input current per neuron.
    executor : concurrent.futures.Executor
    n_chunks : int
        Number of index blocks submitted.

    Returns
    -------
    population : np.ndarray (N,) of NEURON_DTYPE
    spikes : np.ndarray (N,) bool
    """
    current = np.asarray(current, dtype=population['v'].dtype)
    blocks = row_blocks(len(population), n_chunks)
    results = list(executor.map(
        lambda idx: _advance_block(population[idx], current[idx]), blocks))

    new_population = np.concatenate([neurons for neurons, _ in results])
    spikes = np.concatenate([fired for _, fired in results])
    return new_population.astype(NEURON_DTYPE, copy=False), spikes


class HostBackend(StepBackend):
    """Thread-pool backend holding the population in host memory."""

    name = 'host'

    def __init__(self, population, weights, buffer_size, reference_neuron=0,
                 workers=None):
        super().__init__(population, weights, buffer_size, reference_neuron)
        self.workers = workers or DEFAULT_WORKERS
        self.n_chunks = min(self.workers, self.n_neurons)
        self.weights = np.ascontiguousarray(weights, dtype=np.float32)
        self._population = np.array(population, dtype=NEURON_DTYPE, copy=True)
        self._executor = ThreadPoolExecutor(max_workers=self.workers,
                                            thread_name_prefix='izh-host')
        logger.debug("Host backend: %d workers, %d blocks", self.workers, self.n_chunks)

    def advance(self, stimulus, prev_spikes, t):
        synaptic = parallel_connection_input(prev_spikes, self.weights,
                                             self._executor, self.n_chunks)
        current = np.asarray(stimulus, dtype=np.float32) + synaptic

        self._population, spikes = advance_population(
            self._population, current, self._executor, self.n_chunks)
        return spikes, float(self._population['v'][self.reference_neuron])

    def population(self):
        return self._population.copy()

    def close(self):
        self._executor.shutdown(wait=True)
