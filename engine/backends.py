"""
Step backends.

A backend owns the population state and advances every neuron by one step
given the thalamic input for that step. Two implementations share the
update rule in models.izhikevich:

  host         ThreadPoolExecutor over row / neuron blocks (engine.host)
  accelerator  torch kernel over device-resident buffers (engine.accelerator)

Given the same population, weights and input sequence they produce the same
voltage and spike traces up to floating-point summation order.
"""

import abc
import logging

from engine.config import BACKEND_ACCELERATOR, BACKEND_HOST, BACKENDS
from engine.errors import ConfigurationError


logger = logging.getLogger(__name__)


class StepBackend(abc.ABC):
    """Common interface for advancing the population one step."""

    name = None

    def __init__(self, population, weights, buffer_size, reference_neuron=0):
        n = len(population)
        if n == 0:
            raise ConfigurationError("population is empty")
        if weights.shape != (n, n):
            raise ConfigurationError(
                f"weights have shape {weights.shape}, expected ({n}, {n})")
        if buffer_size < 1:
            raise ConfigurationError(f"buffer_size must be at least 1, got {buffer_size}")
        if not 0 <= reference_neuron < n:
            raise ConfigurationError(
                f"reference neuron {reference_neuron} outside population of {n}")
        self.n_neurons = n
        self.buffer_size = buffer_size
        self.reference_neuron = reference_neuron

    @abc.abstractmethod
    def advance(self, stimulus, prev_spikes, t):
        """Advance every neuron by one step.

        Parameters
        ----------
        stimulus : np.ndarray (N,) float32
            Thalamic input for this step.
        prev_spikes : np.ndarray (N,) bool, or None
            Spike vector of the previous step from the history buffer;
            None on the very first step.
        t : int
            Timestep counter, 0 <= t < buffer_size.

        Returns
        -------
        spikes : np.ndarray (N,) bool
        reference_voltage : float
        """

    @abc.abstractmethod
    def population(self):
        """Host copy of the current neuron records (NEURON_DTYPE array)."""

    def close(self):
        """Release pools or device buffers."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def create_backend(kind, population, weights, buffer_size, reference_neuron=0,
                   workers=None, device='auto'):
    """Instantiate a backend by name.

    Raises ConfigurationError for an unknown kind and lets
    BackendUnavailableError from the accelerator propagate: there is no
    automatic fallback here.
    """
    if kind == BACKEND_HOST:
        from engine.host import HostBackend
        backend = HostBackend(population, weights, buffer_size,
                              reference_neuron=reference_neuron, workers=workers)
    elif kind == BACKEND_ACCELERATOR:
        from engine.accelerator import AcceleratorBackend
        backend = AcceleratorBackend(population, weights, buffer_size,
                                     reference_neuron=reference_neuron, device=device)
    else:
        raise ConfigurationError(f"unknown backend {kind!r}, expected one of {BACKENDS}")

    logger.info("Using %s backend for %d neurons", backend.name, backend.n_neurons)
    return backend
