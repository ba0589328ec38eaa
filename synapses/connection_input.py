"""
Synaptic input from the previous step's spikes.

  I_syn[row] = sum of weights[row, col] over every col that spiked at t-1

Each row is an independent reduction, so the work splits by postsynaptic
row across threads. NumPy releases the GIL inside the reductions, which is
what makes thread-level row blocks pay off at N ~ 1000.
"""

import numpy as np


def connection_input_rows(prev_spikes, weights, rows):
    """Synaptic input for a contiguous block of postsynaptic rows.

    Parameters
    ----------
    prev_spikes : np.ndarray (N,) bool
        Spike vector of the previous step.
    weights : np.ndarray (N, N)
        weights[row, col] from presynaptic col onto postsynaptic row.
    rows : slice
        Block of rows to reduce.

    Returns
    -------
    current : np.ndarray (len(rows),)
    """
    block = weights[rows]
    if not prev_spikes.any():
        return np.zeros(block.shape[0], dtype=weights.dtype)
    return block[:, prev_spikes].sum(axis=1, dtype=weights.dtype)


def connection_input(prev_spikes, weights):
    """Synaptic input for every neuron.

    Parameters
    ----------
    prev_spikes : np.ndarray (N,) bool, or None
        Previous step's spike vector. None means there is no previous step
        (t = 0) and yields an all-zero current.
    weights : np.ndarray (N, N)

    Returns
    -------
    current : np.ndarray (N,)
    """
    n = weights.shape[0]
    if prev_spikes is None:
        return np.zeros(n, dtype=weights.dtype)
    prev_spikes = np.asarray(prev_spikes, dtype=bool)
    if prev_spikes.shape != (n,):
        raise ValueError(f"spike vector has shape {prev_spikes.shape}, "
                         f"expected ({n},)")
    return connection_input_rows(prev_spikes, weights, slice(0, n))


def row_blocks(n, n_chunks):
    """Split range(n) into at most n_chunks contiguous slices, in order."""
    n_chunks = max(1, min(n_chunks, n))
    edges = np.linspace(0, n, n_chunks + 1).astype(int)
    return [slice(lo, hi) for lo, hi in zip(edges[:-1], edges[1:]) if hi > lo]


def parallel_connection_input(prev_spikes, weights, executor, n_chunks):
    """Row-parallel version of `connection_input`.

    Parameters
    ----------
    executor : concurrent.futures.Executor
        Pool the row blocks are submitted to.
    n_chunks : int
        Number of row blocks.
    """
    n = weights.shape[0]
    if prev_spikes is None:
        return np.zeros(n, dtype=weights.dtype)
    prev_spikes = np.asarray(prev_spikes, dtype=bool)
    if prev_spikes.shape != (n,):
        raise ValueError(f"spike vector has shape {prev_spikes.shape}, "
                         f"expected ({n},)")

    blocks = row_blocks(n, n_chunks)
    # map() yields in submission order, so the concatenation is index-aligned
    parts = executor.map(
        lambda rows: connection_input_rows(prev_spikes, weights, rows), blocks)
    return np.concatenate(list(parts))
