"""
Run parameters for the 2D heat diffusion solvers.

Both the serial and the MPI programs take the same four positional
arguments:

    size max_time heat_time interval

plus optional physical constants and an output file.
"""

import argparse
from dataclasses import dataclass

from heat_diffusion.errors import ConfigurationError

# ============================================================================
# CONSTANTS
# ============================================================================
A = 1.0                  # heat speed
DT = 1.0                 # time quantum
DD = 2.0                 # change in system (grid spacing)
HEAT_TEMPERATURE = 19.0  # value held by the heat source while it is on
MIN_GRID_SIZE = 3        # smallest grid with an interior cell


@dataclass(frozen=True)
class HeatConfig:
    """
    Parameters of one simulation run.

    Attributes
    ----------
    size : int
        Grid side length (the grid is size x size).
    max_time : int
        Number of timesteps.
    heat_time : int
        The heat source is active while t < heat_time.
    interval : int
        Snapshot cadence in timesteps; 0 disables snapshots.
    a, dt, dd : float
        Heat speed, time quantum and grid spacing.
    """
    size: int
    max_time: int
    heat_time: int
    interval: int
    a: float = A
    dt: float = DT
    dd: float = DD

    @property
    def r(self):
        """Diffusion coefficient of the forward Euler update."""
        return self.a * self.dt / (self.dd * self.dd)

    def validate(self):
        """Raise ConfigurationError if any parameter is out of range."""
        if self.size < MIN_GRID_SIZE:
            raise ConfigurationError(
                f"size must be at least {MIN_GRID_SIZE} so the grid has an "
                f"interior cell (smaller grids make the edge copies "
                f"circular), got {self.size}")
        if self.max_time < 0:
            raise ConfigurationError(
                f"max_time must be non-negative, got {self.max_time}")
        if self.heat_time < 0:
            raise ConfigurationError(
                f"heat_time must be non-negative, got {self.heat_time}")
        if self.interval < 0:
            raise ConfigurationError(
                f"interval must be non-negative, got {self.interval}")
        if self.dd == 0:
            raise ConfigurationError("dd (grid spacing) must be non-zero")
        return self


def build_parser(description):
    """Argument parser shared by the serial and MPI programs."""
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument('size', type=int, help='Grid side length')
    parser.add_argument('max_time', type=int, help='Number of time steps')
    parser.add_argument('heat_time', type=int,
                        help='Steps during which the heat source is on')
    parser.add_argument('interval', type=int,
                        help='Snapshot interval in steps (0 = no snapshots)')
    parser.add_argument('--a', type=float, default=A,
                        help=f'Heat speed (default: {A})')
    parser.add_argument('--dt', type=float, default=DT,
                        help=f'Time quantum (default: {DT})')
    parser.add_argument('--dd', type=float, default=DD,
                        help=f'Grid spacing (default: {DD})')
    parser.add_argument('--output', default=None,
                        help='Save snapshots to this .npz file')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Print a run banner')
    return parser


def config_from_args(args):
    """Build and validate a HeatConfig from parsed arguments."""
    config = HeatConfig(
        size=args.size,
        max_time=args.max_time,
        heat_time=args.heat_time,
        interval=args.interval,
        a=args.a,
        dt=args.dt,
        dd=args.dd,
    )
    return config.validate()
