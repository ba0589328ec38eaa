"""
Simulation configuration.

Module-level defaults first, grouped by concern, then the SimulationConfig
record that a run is built from.
"""

import os
from dataclasses import dataclass
from typing import Optional

from engine.errors import ConfigurationError

# ============================================================
# POPULATION
# ============================================================
DEFAULT_EXCITATORY = 800
DEFAULT_INHIBITORY = 200
REFERENCE_NEURON = 0          # neuron whose voltage is streamed

# ============================================================
# HISTORY / STREAMING
# ============================================================
DEFAULT_BUFFER_SIZE = 1000    # steps kept in the ring buffer (1 ms each)
DEFAULT_CHANNEL_CAPACITY = 1
POLICY_BLOCK = 'block'
POLICY_DROP_OLDEST = 'drop_oldest'
POLICIES = (POLICY_BLOCK, POLICY_DROP_OLDEST)

# ============================================================
# BACKENDS
# ============================================================
BACKEND_HOST = 'host'
BACKEND_ACCELERATOR = 'accelerator'
BACKENDS = (BACKEND_HOST, BACKEND_ACCELERATOR)
DEFAULT_WORKERS = os.cpu_count() or 1
DEFAULT_DEVICE = 'auto'
DEVICES = ('auto', 'cuda', 'mps', 'cpu')


@dataclass
class SimulationConfig:
    """Parameters for one simulation run."""

    n_excitatory: int = DEFAULT_EXCITATORY
    n_inhibitory: int = DEFAULT_INHIBITORY
    buffer_size: int = DEFAULT_BUFFER_SIZE
    backend: str = BACKEND_HOST
    workers: int = DEFAULT_WORKERS
    device: str = DEFAULT_DEVICE
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY
    policy: str = POLICY_BLOCK
    reference_neuron: int = REFERENCE_NEURON
    seed: Optional[int] = None
    steps: Optional[int] = None

    @property
    def n_neurons(self):
        return self.n_excitatory + self.n_inhibitory

    def validate(self):
        """Raise ConfigurationError if the run cannot start."""
        if self.n_excitatory < 0 or self.n_inhibitory < 0:
            raise ConfigurationError(
                f"neuron counts must be non-negative, got "
                f"{self.n_excitatory} excitatory / {self.n_inhibitory} inhibitory")
        if self.n_neurons == 0:
            raise ConfigurationError("population is empty")
        if self.buffer_size < 1:
            raise ConfigurationError(
                f"buffer_size must be at least 1, got {self.buffer_size}")
        if self.channel_capacity < 1:
            raise ConfigurationError(
                f"channel_capacity must be at least 1, got {self.channel_capacity}")
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"unknown backend {self.backend!r}, expected one of {BACKENDS}")
        if self.policy not in POLICIES:
            raise ConfigurationError(
                f"unknown policy {self.policy!r}, expected one of {POLICIES}")
        if self.device not in DEVICES:
            raise ConfigurationError(
                f"unknown device {self.device!r}, expected one of {DEVICES}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {self.workers}")
        if not 0 <= self.reference_neuron < self.n_neurons:
            raise ConfigurationError(
                f"reference neuron {self.reference_neuron} outside population "
                f"of {self.n_neurons}")
        if self.steps is not None and self.steps < 0:
            raise ConfigurationError(f"steps must be non-negative, got {self.steps}")
        return self
