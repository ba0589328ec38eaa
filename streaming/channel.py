"""
Bounded single-producer / single-consumer channels.

Channel wraps queue.Queue with two behaviours when the consumer lags:

  block        send waits for space (backpressure). The simulation pauses
               and nothing is merged or reordered.
  drop_oldest  send evicts the oldest unread item to make room, favouring
               freshness for real-time views. Evictions are counted.

Either side can be closed. A send after the receiver closed raises
ChannelClosed instead of waiting forever; a recv after the sender closed
raises ChannelClosed once the queue is drained.

StepChannels is what the simulation publishes to: a voltage channel and a
spike channel with one shared capacity and policy, moved one timestep at a
time. Under drop_oldest the producer sends both items, and the consumer
takes both, while holding one pair lock. The two queues therefore always
hold the same steps and an eviction removes the same step from each.
"""

import queue
import threading
import time

from engine.config import POLICIES, POLICY_BLOCK, POLICY_DROP_OLDEST

# Wake-up interval for blocked sends / recvs to notice a closed peer (s)
POLL_INTERVAL = 0.05


class ChannelClosed(Exception):
    """The other end of the channel has gone away."""


class Channel:
    """Bounded channel with a configurable full-queue policy."""

    def __init__(self, capacity=1, policy=POLICY_BLOCK, name=''):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        if policy not in POLICIES:
            raise ValueError(f"unknown policy {policy!r}, expected one of {POLICIES}")
        self.capacity = capacity
        self.policy = policy
        self.name = name
        self.dropped = 0
        self._queue = queue.Queue(maxsize=capacity)
        self._mutex = threading.Lock()
        self._sender_closed = threading.Event()
        self._receiver_closed = threading.Event()

    def __len__(self):
        return self._queue.qsize()

    def __repr__(self):
        return (f"Channel(name={self.name!r}, capacity={self.capacity}, "
                f"policy={self.policy!r})")

    @property
    def closed(self):
        return self._sender_closed.is_set() or self._receiver_closed.is_set()

    def send(self, item, timeout=None):
        """Publish one item.

        Raises ChannelClosed if the receiver is closed. Under the block
        policy, raises queue.Full if `timeout` (s) elapses first.
        """
        if self._receiver_closed.is_set():
            raise ChannelClosed(f"receiver of {self.name or 'channel'} closed")
        if self.policy == POLICY_DROP_OLDEST:
            self._send_dropping(item)
        else:
            self._send_blocking(item, timeout)

    def _send_blocking(self, item, timeout):
        waited = 0.0
        while True:
            try:
                self._queue.put(item, timeout=POLL_INTERVAL)
                return
            except queue.Full:
                if self._receiver_closed.is_set():
                    raise ChannelClosed(f"receiver of {self.name or 'channel'} closed")
                waited += POLL_INTERVAL
                if timeout is not None and waited >= timeout:
                    raise

    def _send_dropping(self, item):
        with self._mutex:
            while True:
                try:
                    self._queue.put_nowait(item)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass

    def check_readable(self):
        """Raise ChannelClosed if no item can arrive any more."""
        if self._receiver_closed.is_set():
            raise ChannelClosed(f"receiver of {self.name or 'channel'} closed")
        if self._sender_closed.is_set() and self._queue.empty():
            raise ChannelClosed(f"sender of {self.name or 'channel'} closed")

    def recv(self, timeout=None):
        """Take the oldest item.

        Raises ChannelClosed when the sender is closed and nothing is left
        (or this receiver was closed while waiting), or queue.Empty if
        `timeout` (s) elapses first.
        """
        waited = 0.0
        while True:
            try:
                return self._queue.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                self.check_readable()
                waited += POLL_INTERVAL
                if timeout is not None and waited >= timeout:
                    raise

    def recv_nowait(self):
        """Take the oldest item or raise queue.Empty."""
        return self._queue.get_nowait()

    def drain_latest(self):
        """Empty the channel and return only the newest item (None if empty).

        For consumers that prefer freshness over a complete history.
        """
        latest = None
        while True:
            try:
                latest = self._queue.get_nowait()
            except queue.Empty:
                return latest

    def close_sender(self):
        self._sender_closed.set()

    def close_receiver(self):
        self._receiver_closed.set()


class StepChannels:
    """Voltage and spike channels that carry whole timesteps.

    Parameters
    ----------
    capacity : int
        Steps each channel holds before the policy applies.
    policy : str
        'block' or 'drop_oldest', shared by both channels.
    """

    def __init__(self, capacity=1, policy=POLICY_BLOCK):
        self.voltage = Channel(capacity, policy, name='voltage')
        self.spikes = Channel(capacity, policy, name='spikes')
        self.capacity = capacity
        self.policy = policy
        self._pair_ready = threading.Condition()

    def __len__(self):
        return len(self.voltage)

    def __repr__(self):
        return f"StepChannels(capacity={self.capacity}, policy={self.policy!r})"

    @property
    def dropped(self):
        """Steps evicted unread. Both channels always evict the same steps."""
        return self.voltage.dropped

    @property
    def closed(self):
        return self.voltage.closed or self.spikes.closed

    def send(self, voltage, spikes):
        """Publish one step. Raises ChannelClosed if the receiver is gone."""
        if self.policy == POLICY_DROP_OLDEST:
            with self._pair_ready:
                self.voltage.send(voltage)
                self.spikes.send(spikes)
                self._pair_ready.notify()
        else:
            # FIFO without eviction keeps the two queues in step
            self.voltage.send(voltage)
            self.spikes.send(spikes)

    def recv(self, timeout=None):
        """Take the oldest step as (voltage, spikes).

        Raises ChannelClosed once the producer has closed and every step is
        taken, or queue.Empty if `timeout` (s) elapses with nothing to take.
        """
        if self.policy != POLICY_DROP_OLDEST:
            voltage = self.voltage.recv(timeout)
            # The spike vector of a step is sent right after its voltage
            return voltage, self.spikes.recv()

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._pair_ready:
            while not len(self.voltage):
                self.voltage.check_readable()
                wait = POLL_INTERVAL
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise queue.Empty
                    wait = min(wait, remaining)
                self._pair_ready.wait(wait)
            return self.voltage.recv_nowait(), self.spikes.recv_nowait()

    def drain_latest(self):
        """Empty both channels and return the newest (voltage, spikes), or None.

        Under the block policy call it only once the producer has stopped.
        """
        with self._pair_ready:
            voltage = self.voltage.drain_latest()
            spikes = self.spikes.drain_latest()
        if voltage is None:
            return None
        return voltage, spikes

    def close_sender(self):
        with self._pair_ready:
            self.voltage.close_sender()
            self.spikes.close_sender()
            self._pair_ready.notify_all()

    def close_receiver(self):
        self.voltage.close_receiver()
        self.spikes.close_receiver()
