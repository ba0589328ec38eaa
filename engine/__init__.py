"""Step engine: configuration, history buffer and the two step backends.

The simulation loop lives in engine.simulation and is imported from there
directly, since it also pulls in the streaming package.
"""
from engine.errors import SimulationError, ConfigurationError, BackendUnavailableError
from engine.config import SimulationConfig
from engine.history import HistoryBuffer
from engine.backends import StepBackend, create_backend
