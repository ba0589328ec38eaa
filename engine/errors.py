"""
Error kinds raised by the simulation engine.

Configuration problems and backend start-up problems are kept apart so a
caller can react to the second (for example by switching to the host
backend) without masking the first.
"""


class SimulationError(Exception):
    """Base class for engine errors."""


class ConfigurationError(SimulationError, ValueError):
    """Invalid run parameters, detected before the loop starts."""


class BackendUnavailableError(SimulationError, RuntimeError):
    """The requested backend could not be initialised.

    Raised when no compatible accelerator device is found or the compute
    kernel fails its warm-up dispatch.
    """
