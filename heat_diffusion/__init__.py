"""Distributed 2D heat diffusion with MPI row decomposition."""

from heat_diffusion.config import HeatConfig
from heat_diffusion.errors import (
    ConfigurationError,
    ExchangeError,
    GatherError,
    HeatDiffusionError,
)

__all__ = [
    "ConfigurationError",
    "ExchangeError",
    "GatherError",
    "HeatConfig",
    "HeatDiffusionError",
]
