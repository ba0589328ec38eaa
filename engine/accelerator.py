"""
Accelerator step backend (torch).

Device-resident buffers:
  neurons      (N, 6) float32, columns in NEURON_FIELDS order
  spike_slots  (buffer_size, N) uint8, one slot per timestep, modulo index
  weights      (N, N) float32
  stimulus     (N,) float32, uploaded every step
  config       (3,) int64: population size, total slots, current time index

One dispatch of `izhikevich_kernel` covers every neuron: unit i reduces
row i of the weights against the previous slot (t - 1 mod slots), runs the
shared update rule on its own neuron row and writes its own neuron row and
its own entry in slot t.

Host side, per step: upload stimulus and config, dispatch, queue the
readback of the reference voltage and slot t, then poll the readback to
completion. The next step does not start until the poll returns, so slot t
is always fully written before step t + 1 reads it.

Thalamic noise stays on the host (NumPy Generator) so both backends can
consume the identical input sequence.
"""

import logging
import time

import numpy as np
import torch

from engine.backends import StepBackend
from engine.errors import BackendUnavailableError
from models.izhikevich import NEURON_DTYPE, NEURON_FIELDS, THRESHOLD_MV, integrate


logger = logging.getLogger(__name__)

# Neuron buffer columns
DECAY_RATE = NEURON_FIELDS.index('decay_rate')
SENSITIVITY = NEURON_FIELDS.index('sensitivity')
V_RESET = NEURON_FIELDS.index('v_reset')
U_RESET = NEURON_FIELDS.index('u_reset')
V = NEURON_FIELDS.index('v')
U = NEURON_FIELDS.index('u')

# Config buffer entries
CONFIG_N = 0
CONFIG_SLOTS = 1
CONFIG_T = 2

# Sleep between readback completion checks (s)
READBACK_POLL_INTERVAL = 1e-4


def _mps_available():
    mps = getattr(torch.backends, 'mps', None)
    return mps is not None and mps.is_available()


def resolve_device(device='auto'):
    """Pick the torch device for the accelerator backend.

    'auto' tries cuda then mps and raises if neither exists. 'cpu' is
    accepted explicitly; it runs the same kernel through torch's CPU
    implementation.
    """
    if device == 'auto':
        if torch.cuda.is_available():
            return torch.device('cuda')
        if _mps_available():
            return torch.device('mps')
        raise BackendUnavailableError("no compatible accelerator found (tried cuda, mps)")
    if device == 'cuda' and not torch.cuda.is_available():
        raise BackendUnavailableError("cuda requested but torch.cuda is not available")
    if device == 'mps' and not _mps_available():
        raise BackendUnavailableError("mps requested but torch.backends.mps is not available")
    try:
        return torch.device(device)
    except RuntimeError as exc:
        raise BackendUnavailableError(f"invalid device {device!r}") from exc


def wait_for_event(event, interval=READBACK_POLL_INTERVAL):
    """Sleep-poll `event.query()` until the queued work has completed."""
    while not event.query():
        time.sleep(interval)


def pack_neurons(population):
    """Structured NEURON_DTYPE array -> (N, 6) float32 array."""
    return np.stack([population[name] for name in NEURON_FIELDS], axis=1).astype(np.float32)


def unpack_neurons(packed):
    """(N, 6) array -> structured NEURON_DTYPE array."""
    population = np.zeros(packed.shape[0], dtype=NEURON_DTYPE)
    for col, name in enumerate(NEURON_FIELDS):
        population[name] = packed[:, col]
    return population


def izhikevich_kernel(neurons, spike_slots, weights, stimulus, config):
    """Advance all neurons one step in place on the device.

    Returns the spike vector for this step (bool tensor, still on device).
    """
    slots = config[CONFIG_SLOTS]
    t = config[CONFIG_T]
    prev = torch.remainder(t - 1, slots).view(1)

    prev_spikes = spike_slots.index_select(0, prev).squeeze(0)
    synaptic = weights.matmul(prev_spikes.to(weights.dtype))
    current = stimulus + synaptic

    v, u = integrate(neurons[:, V], neurons[:, U],
                     neurons[:, DECAY_RATE], neurons[:, SENSITIVITY], current)
    fired = v >= THRESHOLD_MV

    neurons[:, V] = torch.where(fired, neurons[:, V_RESET], v)
    neurons[:, U] = torch.where(fired, u + neurons[:, U_RESET], u)
    spike_slots.index_copy_(0, t.view(1), fired.to(spike_slots.dtype).unsqueeze(0))
    return fired


class AcceleratorBackend(StepBackend):
    """Torch backend with device-resident state and polled readback."""

    name = 'accelerator'

    def __init__(self, population, weights, buffer_size, reference_neuron=0,
                 device='auto'):
        super().__init__(population, weights, buffer_size, reference_neuron)
        self.device = resolve_device(device)
        pin = self.device.type == 'cuda'
        n = self.n_neurons

        try:
            self.neurons = torch.from_numpy(pack_neurons(population)).to(self.device)
            self.weights = torch.from_numpy(
                np.ascontiguousarray(weights, dtype=np.float32)).to(self.device)
            self.spike_slots = torch.zeros((buffer_size, n), dtype=torch.uint8,
                                           device=self.device)
            self.stimulus = torch.zeros(n, dtype=torch.float32, device=self.device)
            self.config = torch.tensor([n, buffer_size, 0], dtype=torch.int64,
                                       device=self.device)
        except RuntimeError as exc:
            raise BackendUnavailableError(
                f"could not allocate device buffers on {self.device}") from exc

        # Host staging buffers
        self._host_stimulus = torch.zeros(n, dtype=torch.float32, pin_memory=pin)
        self._host_config = torch.tensor([n, buffer_size, 0], dtype=torch.int64,
                                         pin_memory=pin)
        self._readback_spikes = torch.zeros(n, dtype=torch.bool, pin_memory=pin)
        self._readback_voltage = torch.zeros(1, dtype=torch.float32, pin_memory=pin)

        self.dispatches = 0
        self.poll_seconds = 0.0

        self._warm_up()
        logger.info("Accelerator backend on %s (%d neurons, %d slots)",
                    self.device, n, buffer_size)

    def _warm_up(self):
        """Dispatch once on scratch copies so kernel failures surface now."""
        try:
            izhikevich_kernel(self.neurons.clone(), self.spike_slots.clone(),
                              self.weights, self.stimulus, self.config.clone())
            self._synchronize()
        except RuntimeError as exc:
            raise BackendUnavailableError(
                f"compute kernel failed on {self.device}") from exc

    def _synchronize(self):
        if self.device.type == 'cuda':
            torch.cuda.synchronize(self.device)
        elif self.device.type == 'mps':
            torch.mps.synchronize()

    def _await_readback(self):
        """Block until queued readback copies have landed in host memory."""
        t0 = time.perf_counter()
        if self.device.type == 'cuda':
            event = torch.cuda.Event()
            event.record()
            wait_for_event(event)
        else:
            self._synchronize()
        self.poll_seconds += time.perf_counter() - t0

    def advance(self, stimulus, prev_spikes, t):
        # prev_spikes is not needed: the kernel reads slot t - 1 on the device
        if not 0 <= t < self.buffer_size:
            raise ValueError(f"time index {t} outside [0, {self.buffer_size})")

        self._host_stimulus.copy_(torch.from_numpy(
            np.ascontiguousarray(stimulus, dtype=np.float32)))
        self._host_config[CONFIG_T] = t
        self.stimulus.copy_(self._host_stimulus, non_blocking=True)
        self.config.copy_(self._host_config, non_blocking=True)

        fired = izhikevich_kernel(self.neurons, self.spike_slots, self.weights,
                                  self.stimulus, self.config)
        self.dispatches += 1

        self._readback_spikes.copy_(fired, non_blocking=True)
        self._readback_voltage.copy_(
            self.neurons[self.reference_neuron, V].view(1), non_blocking=True)
        self._await_readback()

        return self._readback_spikes.numpy().copy(), float(self._readback_voltage[0])

    def population(self):
        return unpack_neurons(self.neurons.cpu().numpy())

    def close(self):
        self._synchronize()
        logger.debug("Accelerator backend closed after %d dispatches (%.3fs polling)",
                     self.dispatches, self.poll_seconds)
