"""
Consumer side of the streaming pipeline.

HistoryConsumer runs on its own thread. Each iteration it takes one whole
step (voltage and spike vector) from a StepChannels pair, so the two
series stay time-aligned, and pushes the pair into its own HistoryBuffer.
A renderer reads that buffer through `snapshot()`, which holds the buffer
lock only for the copy.
"""

import logging
import threading

from engine.history import HistoryBuffer
from streaming.channel import ChannelClosed


logger = logging.getLogger(__name__)


class HistoryConsumer:
    """Drains a StepChannels pair into a history buffer."""

    def __init__(self, channels, buffer_size, n_neurons):
        self.channels = channels
        self.history = HistoryBuffer(buffer_size, n_neurons)
        self.received = 0
        self._stop = threading.Event()
        self._thread = None

    def drain_once(self, timeout=None):
        """Pull one (voltage, spikes) pair and record it.

        Returns False once the producer has closed and every step is taken.
        """
        try:
            voltage, spikes = self.channels.recv(timeout=timeout)
        except ChannelClosed:
            return False
        self.history.push(spikes, voltage)
        self.received += 1
        return True

    def run(self):
        while not self._stop.is_set():
            if not self.drain_once():
                logger.debug("Producer closed after %d steps", self.received)
                break

    def start(self):
        self._thread = threading.Thread(target=self.run, name='izh-consumer',
                                        daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout=None):
        """Stop draining and tell the producer nobody is listening."""
        self._stop.set()
        self.channels.close_receiver()
        if self._thread is not None:
            self._thread.join(timeout)

    def join(self, timeout=None):
        if self._thread is not None:
            self._thread.join(timeout)

    def snapshot(self):
        """Time-ordered (spikes, voltages) copy of the buffered window."""
        return self.history.snapshot()
