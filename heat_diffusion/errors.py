"""
Error types for the distributed heat solver.

Every error names the phase of the run that failed so the launcher can
report it before tearing the process group down.
"""


class HeatDiffusionError(RuntimeError):
    """Base class for all solver errors."""

    phase = "simulation"

    def __init__(self, message, rank=None, phase=None):
        super().__init__(message)
        self.rank = rank
        if phase is not None:
            self.phase = phase


class ConfigurationError(HeatDiffusionError, ValueError):
    """Invalid run parameters or an impossible decomposition."""

    phase = "configuration"


class ExchangeError(HeatDiffusionError):
    """A halo send/receive with a neighbor failed."""

    phase = "exchange"


class GatherError(HeatDiffusionError):
    """The root could not reassemble the field from the workers."""

    phase = "gather"
