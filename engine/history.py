"""
Fixed-capacity history of recent steps.

Stores the last `capacity` (spike vector, reference voltage) pairs in
pre-sized arrays indexed modulo capacity. `index` is the timestep counter:
the slot the next push writes, always in [0, capacity), wrapping to 0 after
the last slot. Once full, each push overwrites the oldest entry.

The simulation reads the previous step's spikes from here (slot
index - 1 under wraparound), and the consumer side keeps its own instance
as the data behind the live view. Every read and write goes through one
lock; hold it only for the copy.
"""

import threading

import numpy as np


class HistoryBuffer:
    """Ring buffer of (spike vector, voltage) pairs."""

    def __init__(self, capacity, n_neurons):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.n_neurons = n_neurons
        self.spikes = np.zeros((capacity, n_neurons), dtype=bool)
        self.voltages = np.zeros(capacity, dtype=np.float32)
        self.index = 0
        self._length = 0
        self.lock = threading.Lock()

    def __len__(self):
        return self._length

    @property
    def full(self):
        return self._length == self.capacity

    def previous_index(self, t=None):
        """Slot written one step before `t` (default: the current index)."""
        if t is None:
            t = self.index
        return (t - 1) % self.capacity

    def push(self, spikes, voltage):
        """Record one step; evicts the oldest entry when at capacity.

        Returns the slot that was written.
        """
        spikes = np.asarray(spikes, dtype=bool)
        if spikes.shape != (self.n_neurons,):
            raise ValueError(f"spike vector has shape {spikes.shape}, "
                             f"expected ({self.n_neurons},)")
        with self.lock:
            slot = self.index
            self.spikes[slot] = spikes
            self.voltages[slot] = voltage
            self.index = (slot + 1) % self.capacity
            self._length = min(self._length + 1, self.capacity)
        return slot

    def column_at(self, time_index):
        """Return (spikes, voltage) recorded in slot `time_index`.

        Raises IndexError for slots outside the buffer or not yet written.
        """
        if not 0 <= time_index < self.capacity:
            raise IndexError(f"slot {time_index} outside buffer of {self.capacity}")
        with self.lock:
            # Until the first wrap, slots [0, length) are the written ones
            if not self.full and time_index >= self._length:
                raise IndexError(f"slot {time_index} has not been written")
            return self.spikes[time_index].copy(), float(self.voltages[time_index])

    def previous_spikes(self):
        """Spike vector of the most recent step, or None if nothing recorded."""
        if self._length == 0:
            return None
        spikes, _ = self.column_at(self.previous_index())
        return spikes

    def latest(self):
        """(spikes, voltage) of the most recent step, or None."""
        if self._length == 0:
            return None
        return self.column_at(self.previous_index())

    def snapshot(self):
        """Copy out the buffered window in time order, oldest first.

        Returns
        -------
        spikes : np.ndarray (len, n_neurons) bool
        voltages : np.ndarray (len,) float32
        """
        with self.lock:
            if self.full:
                order = (np.arange(self.capacity) + self.index) % self.capacity
            else:
                order = np.arange(self._length)
            return self.spikes[order].copy(), self.voltages[order].copy()
