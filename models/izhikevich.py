"""
Izhikevich point-neuron model.

Two-variable reduction of conductance-based spiking (Izhikevich 2003,
IEEE Trans Neural Netw 14:1569-1572):

  dv/dt = 0.04 v^2 + 5 v + 140 - u + I
  du/dt = a (b v - u)
  if v >= 30 mV:  v <- c,  u <- u + d

Here a = decay_rate, b = sensitivity, c = v_reset, d = u_reset.

Integration is forward Euler over one 1 ms step, split into two 0.5 ms
half-steps for v (as in Izhikevich's published network script) followed by a single
update of u using the new v.

The update arithmetic lives in `integrate()` and is written only in terms
of +, -, * so the same function runs on Python floats, NumPy arrays and
torch tensors. Both step backends call it, which keeps the constants below
in one place.

NaN / Inf inputs propagate silently; nothing here guards against them.
"""

import numpy as np


# Firing threshold and reset test (mV). Inclusive: v >= THRESHOLD_MV fires.
THRESHOLD_MV = 30.0

# Euler sub-steps per 1 ms step for the membrane potential
HALF_STEPS = 2
HALF_STEP_MS = 0.5

# Quadratic membrane coefficients
V_SQUARED_COEF = 0.04
V_LINEAR_COEF = 5.0
V_CONSTANT = 140.0

# Field order matters: the accelerator backend packs neurons into an
# (N, 6) float32 buffer with columns in this order.
NEURON_FIELDS = ('decay_rate', 'sensitivity', 'v_reset', 'u_reset', 'v', 'u')

NEURON_DTYPE = np.dtype([(name, np.float32) for name in NEURON_FIELDS])


def make_neuron(decay_rate, sensitivity, v_reset, u_reset, v, u=None):
    """Build a single neuron record.

    If `u` is omitted it starts at sensitivity * v, the model's resting
    recovery value.
    """
    if u is None:
        u = sensitivity * v
    record = np.zeros((), dtype=NEURON_DTYPE)
    record['decay_rate'] = decay_rate
    record['sensitivity'] = sensitivity
    record['v_reset'] = v_reset
    record['u_reset'] = u_reset
    record['v'] = v
    record['u'] = u
    return record


def integrate(v, u, decay_rate, sensitivity, current):
    """Advance (v, u) by one step without applying the spike reset.

    Works elementwise on floats, NumPy arrays or torch tensors.

    Returns
    -------
    v_new, u_new
        Potential after both half-steps and the recovery variable updated
        from that potential.
    """
    for _ in range(HALF_STEPS):
        v = v + HALF_STEP_MS * (V_SQUARED_COEF * v * v + V_LINEAR_COEF * v
                                + V_CONSTANT - u + current)
    u = u + decay_rate * (sensitivity * v - u)
    return v, u


def step(neuron, input_current):
    """Advance one neuron by one timestep.

    Parameters
    ----------
    neuron : numpy structured scalar of NEURON_DTYPE
        Current state. Not modified.
    input_current : float
        Total input current for this step (thalamic + synaptic).

    Returns
    -------
    updated : numpy structured scalar of NEURON_DTYPE
    spiked : bool
    """
    v, u = integrate(float(neuron['v']), float(neuron['u']),
                     float(neuron['decay_rate']), float(neuron['sensitivity']),
                     float(input_current))

    updated = np.array(neuron, dtype=NEURON_DTYPE, copy=True)
    spiked = v >= THRESHOLD_MV
    if spiked:
        updated['v'] = neuron['v_reset']
        updated['u'] = u + float(neuron['u_reset'])
    else:
        updated['v'] = v
        updated['u'] = u
    return updated, bool(spiked)


def step_arrays(v, u, decay_rate, sensitivity, v_reset, u_reset, current):
    """Vectorised `step` over index-aligned NumPy arrays.

    Returns new (v, u) arrays and the boolean spike vector. Inputs are not
    modified.
    """
    v_new, u_new = integrate(v, u, decay_rate, sensitivity, current)
    fired = v_new >= THRESHOLD_MV
    v_out = np.where(fired, v_reset, v_new).astype(v.dtype, copy=False)
    u_out = np.where(fired, u_new + u_reset, u_new).astype(u.dtype, copy=False)
    return v_out, u_out, fired
