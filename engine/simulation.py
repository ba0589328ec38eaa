"""
Simulation loop.

Per timestep:
  input    draw thalamic noise, look up the previous spike vector
  advance  backend steps every neuron (synaptic input + update rule)
  record   push (spikes, reference voltage) into the history buffer,
           which also moves the timestep counter on (mod buffer_size)
  publish  send the voltage and the spike vector as one step on the
           StepChannels pair

Publishing to a closed consumer is logged once and otherwise ignored: the
loop does not depend on anyone listening. With the block policy a slow
consumer pauses the loop instead.

The loop runs until its step limit, until `stop_event` is set, or, with
neither, until the process exits.
"""

import logging
import threading
import time

import numpy as np

from engine.backends import create_backend
from engine.history import HistoryBuffer
from models.thalamic_input import ThalamicInput
from population.generator import connectivity_stats, generate
from streaming.channel import ChannelClosed, StepChannels


logger = logging.getLogger(__name__)

PHASES = ('input', 'advance', 'record', 'publish')


class Simulation:
    """Drives a backend step by step and streams the results."""

    def __init__(self, backend, stimulus, channels=None, history=None):
        """
        Parameters
        ----------
        backend : StepBackend
        stimulus : object with next() -> np.ndarray (N,)
            Per-step thalamic input source, e.g. ThalamicInput.
        channels : StepChannels, optional
            Sink for the reference voltage and the spike vector of each step.
        history : HistoryBuffer, optional
            Defaults to a buffer sized to the backend's slot count.
        """
        self.backend = backend
        self.stimulus = stimulus
        self.channels = channels
        if history is None:
            history = HistoryBuffer(backend.buffer_size, backend.n_neurons)
        self.history = history
        if self.history.capacity != backend.buffer_size:
            raise ValueError(f"history holds {self.history.capacity} steps but the "
                             f"backend has {backend.buffer_size} slots")
        self.steps_done = 0
        self.timings = {phase: 0.0 for phase in PHASES}
        self._consumer_gone = False
        self._thread = None

    @property
    def t(self):
        """Timestep counter, 0 <= t < buffer_size."""
        return self.history.index

    def step(self):
        """Run one timestep. Returns (spikes, reference_voltage)."""
        t0 = time.perf_counter()
        t = self.history.index
        stimulus = self.stimulus.next()
        prev_spikes = self.history.previous_spikes()
        t1 = time.perf_counter()

        spikes, voltage = self.backend.advance(stimulus, prev_spikes, t)
        t2 = time.perf_counter()

        self.history.push(spikes, voltage)
        t3 = time.perf_counter()

        self._publish(voltage, spikes)
        t4 = time.perf_counter()

        self.timings['input'] += t1 - t0
        self.timings['advance'] += t2 - t1
        self.timings['record'] += t3 - t2
        self.timings['publish'] += t4 - t3
        self.steps_done += 1
        logger.debug("step %d (slot %d): %d spikes, v_ref=%.2f",
                     self.steps_done, t, int(spikes.sum()), voltage)
        return spikes, voltage

    def _publish(self, voltage, spikes):
        if self.channels is None or self._consumer_gone:
            return
        try:
            self.channels.send(voltage, spikes)
        except ChannelClosed:
            self._consumer_gone = True
            logger.warning("Consumer of %r went away; continuing without it",
                           self.channels)

    def run(self, n_steps=None, stop_event=None):
        """Step until `n_steps` are done or `stop_event` is set.

        Returns the number of steps run by this call. Closes the sending
        side of the channels on exit.
        """
        start = time.perf_counter()
        done = 0
        try:
            while n_steps is None or done < n_steps:
                if stop_event is not None and stop_event.is_set():
                    break
                self.step()
                done += 1
        finally:
            if self.channels is not None:
                self.channels.close_sender()

        elapsed = time.perf_counter() - start
        rate = done / elapsed if elapsed > 0 else float('inf')
        logger.info("Simulated %d steps in %.2fs (%.1f steps/s) on %s backend",
                    done, elapsed, rate, self.backend.name)
        return done

    def start(self, n_steps=None, stop_event=None):
        """Run the loop on its own thread. Returns the thread."""
        self._thread = threading.Thread(target=self.run, args=(n_steps, stop_event),
                                        name='izh-simulation', daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout=None):
        if self._thread is not None:
            self._thread.join(timeout)

    def timing_summary(self):
        """Mean wall time per phase in ms, plus accelerator polling if any."""
        n = max(self.steps_done, 1)
        summary = {phase: 1000.0 * total / n for phase, total in self.timings.items()}
        poll = getattr(self.backend, 'poll_seconds', None)
        if poll is not None:
            summary['readback_poll'] = 1000.0 * poll / n
        return summary

    def close(self):
        self.backend.close()


def build_simulation(config, channels=None):
    """Validate `config`, generate the network and wire up a Simulation.

    If `channels` is not given, a StepChannels pair is created from the
    configured capacity and policy.

    Raises
    ------
    ConfigurationError
        Before anything is generated, if the config is invalid.
    BackendUnavailableError
        If the accelerator backend cannot start.
    """
    config.validate()

    rng = np.random.default_rng(config.seed)
    population, weights = generate(config.n_excitatory, config.n_inhibitory, rng)
    logger.info("Network: %d excitatory, %d inhibitory neurons",
                config.n_excitatory, config.n_inhibitory)
    logger.debug("Connectivity: %s", connectivity_stats(weights, config.n_excitatory))

    backend = create_backend(config.backend, population, weights, config.buffer_size,
                             reference_neuron=config.reference_neuron,
                             workers=config.workers, device=config.device)

    stimulus_seed = None if config.seed is None else config.seed + 1000
    stimulus = ThalamicInput(config.n_excitatory, config.n_inhibitory, seed=stimulus_seed)

    if channels is None:
        channels = StepChannels(config.channel_capacity, config.policy)

    return Simulation(backend, stimulus, channels)
