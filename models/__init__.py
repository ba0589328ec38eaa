from models.izhikevich import (NEURON_DTYPE, NEURON_FIELDS, THRESHOLD_MV, HALF_STEPS,
                               HALF_STEP_MS, integrate, make_neuron, step, step_arrays)
from models.thalamic_input import ThalamicInput, SilentInput, thalamic_input
