"""
Summary statistics over a recorded spike window.

Inputs are history snapshots in time order: spikes (n_steps, n_neurons)
bool and the reference voltage (n_steps,). One step is 1 ms.
"""

import numpy as np
from scipy import signal
from scipy.ndimage import gaussian_filter1d


STEP_MS = 1.0


def spike_counts(spikes):
    """Number of spikes per neuron over the window."""
    return np.asarray(spikes, dtype=bool).sum(axis=0)


def mean_firing_rate(spikes, dt_ms=STEP_MS):
    """Mean firing rate per neuron in Hz."""
    spikes = np.asarray(spikes, dtype=bool)
    n_steps = spikes.shape[0]
    if n_steps == 0:
        return 0.0
    duration_s = n_steps * dt_ms / 1000.0
    return float(spikes.sum() / (spikes.shape[1] * duration_s))


def population_rate(spikes, dt_ms=STEP_MS, sigma_ms=5.0):
    """Smoothed population firing rate (Hz per neuron) per step.

    Parameters
    ----------
    spikes : ndarray (n_steps, n_neurons) bool
    dt_ms : float
        Step length in ms.
    sigma_ms : float
        Gaussian smoothing width in ms. 0 disables smoothing.
    """
    spikes = np.asarray(spikes, dtype=bool)
    if spikes.shape[0] == 0:
        return np.zeros(0)
    rate = spikes.mean(axis=1) * (1000.0 / dt_ms)
    if sigma_ms > 0:
        rate = gaussian_filter1d(rate, sigma=sigma_ms / dt_ms)
    return rate


def dominant_frequency(spikes, dt_ms=STEP_MS, fmin=1.0, fmax=100.0):
    """Peak frequency (Hz) of the population rhythm, via Welch's PSD.

    Returns NaN if the window is too short or there are no spikes.
    """
    rate = population_rate(spikes, dt_ms, sigma_ms=0.0)
    if len(rate) < 16 or not np.any(rate):
        return float('nan')

    fs = 1000.0 / dt_ms
    freqs, psd = signal.welch(rate - rate.mean(), fs=fs, nperseg=min(256, len(rate)))
    band = (freqs >= fmin) & (freqs <= fmax)
    if not np.any(band):
        return float('nan')
    return float(freqs[band][np.argmax(psd[band])])


def participation_fraction(spikes):
    """Fraction of neurons that spiked at least once in the window."""
    spikes = np.asarray(spikes, dtype=bool)
    if spikes.size == 0:
        return 0.0
    return float(spikes.any(axis=0).mean())


def summarize(spikes, voltages, dt_ms=STEP_MS):
    """Dict of window statistics for logging."""
    voltages = np.asarray(voltages)
    return {
        'n_steps': int(np.asarray(spikes).shape[0]),
        'total_spikes': int(spike_counts(spikes).sum()),
        'mean_rate_hz': mean_firing_rate(spikes, dt_ms),
        'dominant_freq_hz': dominant_frequency(spikes, dt_ms),
        'participation': participation_fraction(spikes),
        'v_ref_min': float(voltages.min()) if voltages.size else float('nan'),
        'v_ref_max': float(voltages.max()) if voltages.size else float('nan'),
    }
