"""
Rendering of the buffered window: spike raster over reference voltage.

Everything here reads consumer snapshots; nothing holds the history lock
while drawing.
"""

import os

import numpy as np
import matplotlib.pyplot as plt


V_LIMITS = (-100.0, 30.0)
FRAME_INTERVAL_MS = 16.6


def _draw(axes, spikes, voltages, capacity, n_neurons, show_spikes=True,
          reference_neuron=0):
    raster, trace = axes
    raster.clear()
    trace.clear()

    raster.set_title('Spikes')
    raster.set_xlim(0, capacity)
    raster.set_ylim(0, n_neurons)
    raster.set_ylabel('Neuron')
    if show_spikes and len(spikes):
        steps, neurons = np.nonzero(spikes)
        raster.scatter(steps, neurons, s=2, c='red', marker='o', linewidths=0)

    trace.set_title(f'Neuron {reference_neuron} voltage')
    trace.set_xlim(0, capacity)
    trace.set_ylim(*V_LIMITS)
    trace.set_xlabel('Step (ms)')
    trace.set_ylabel('v (mV)')
    trace.plot(np.arange(len(voltages)), voltages, 'r-', linewidth=0.8)


def _figure():
    fig, axes = plt.subplots(2, 1, figsize=(10, 10), sharex=True,
                             gridspec_kw={'height_ratios': [4, 1]})
    return fig, axes


def plot_history(spikes, voltages, capacity=None, save_path=None, show_spikes=True,
                 reference_neuron=0):
    """Draw a snapshot and optionally save it.

    Parameters
    ----------
    spikes : ndarray (n_steps, n_neurons) bool
    voltages : ndarray (n_steps,)
    capacity : int, optional
        Width of the time axis. Defaults to the snapshot length.
    save_path : str, optional
        Output image file.
    show_spikes : bool
        False skips the raster, which is the slow part for large networks.
    """
    spikes = np.asarray(spikes, dtype=bool)
    n_steps = spikes.shape[0]
    n_neurons = spikes.shape[1] if spikes.ndim == 2 else 0
    capacity = capacity or max(n_steps, 1)

    fig, axes = _figure()
    _draw(axes, spikes, voltages, capacity, n_neurons, show_spikes, reference_neuron)
    plt.tight_layout()
    if save_path:
        directory = os.path.dirname(os.path.abspath(save_path))
        os.makedirs(directory, exist_ok=True)
        plt.savefig(save_path, dpi=100, bbox_inches='tight')
    plt.close(fig)
    return fig


def live_view(consumer, capacity, n_neurons, show_spikes=True, reference_neuron=0):
    """Open a window that redraws the consumer's buffer about 60 times a second.

    Blocks until the window is closed.
    """
    from matplotlib.animation import FuncAnimation

    fig, axes = _figure()

    def update(_frame):
        spikes, voltages = consumer.snapshot()
        _draw(axes, spikes, voltages, capacity, n_neurons, show_spikes,
              reference_neuron)
        return []

    # Keep a reference so the animation is not garbage-collected
    animation = FuncAnimation(fig, update, interval=FRAME_INTERVAL_MS,
                              cache_frame_data=False)
    plt.show()
    return animation
