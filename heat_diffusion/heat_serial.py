"""
2D Heat Diffusion - Serial NumPy Version
========================================

Single-process reference for the MPI solver. Works on the whole grid at
once and is used as ground truth when comparing against the MPI version.

Usage:
    python -m heat_diffusion.heat_serial size max_time heat_time interval [--output file.npz]

Examples:
    python -m heat_diffusion.heat_serial 5 1 1 1
    python -m heat_diffusion.heat_serial 100 1000 500 100 --output serial.npz
"""

import sys
import time

import numpy as np

from heat_diffusion.config import HEAT_TEMPERATURE, build_parser, config_from_args
from heat_diffusion.errors import ConfigurationError
from heat_diffusion.heat_mpi import format_snapshot, heat_band, should_report


# ============================================================================
# UPDATE (whole-grid NumPy version)
# ============================================================================

def apply_boundaries_numpy(z, t, heat_time):
    """
    Insulated edges and heat source on the full grid, in place.

    Parameters
    ----------
    z : np.ndarray, shape (size, size)
        Current phase, indexed [x, y].
    t : int
        Current timestep.
    heat_time : int
        Heat source is on while t < heat_time.
    """
    # two left-most and two right-most rows are identical
    z[0, :] = z[1, :]
    z[-1, :] = z[-2, :]

    # two upper and lower columns are identical
    z[:, 0] = z[:, 1]
    z[:, -1] = z[:, -2]

    if t < heat_time:
        lo, hi = heat_band(z.shape[0])
        z[lo:hi, 0] = HEAT_TEMPERATURE


def update_heat_numpy(z, z_next, r):
    """
    One forward Euler step of the interior: reads `z`, writes `z_next`.
    """
    center = z[1:-1, 1:-1]
    z_next[1:-1, 1:-1] = (center
                          + r * (z[2:, 1:-1] - 2 * center + z[:-2, 1:-1])
                          + r * (z[1:-1, 2:] - 2 * center + z[1:-1, :-2]))


# ============================================================================
# SIMULATION LOOP
# ============================================================================

def simulate_serial(config, verbose=True, report=True, keep_history=True):
    """
    Run the serial heat simulation.

    Parameters
    ----------
    config : HeatConfig
        Validated run parameters.
    verbose : bool
        Print a banner and summary.
    report : bool
        Print snapshots in the same format as the MPI version.
    keep_history : bool
        Collect reported snapshots into `history`. When False `times` and
        `history` stay empty and only `final` is kept.

    Returns
    -------
    times : list of int
        Timesteps at saved snapshots.
    history : list of np.ndarray
        Snapshots of the current phase after boundary conditions.
    final : np.ndarray or None
        Snapshot at the last timestep.
    elapsed : float
        Wall-clock seconds.
    """
    z = np.zeros((2, config.size, config.size), dtype=np.float64)
    r = config.r

    times = []
    history = []
    final = None

    if verbose:
        print(f"\n=== Starting Serial Simulation ===")
        print(f"Grid: {config.size} x {config.size}")
        print(f"Time steps: {config.max_time}")
        print(f"Heat on for: {config.heat_time} steps")
        print()

    t_start = time.time()

    for t in range(config.max_time):
        p = t % 2
        apply_boundaries_numpy(z[p], t, config.heat_time)

        final = z[p].copy()
        if should_report(t, config.interval, config.max_time):
            if keep_history:
                times.append(t)
                history.append(final)
            if report:
                print(format_snapshot(t, final))

        update_heat_numpy(z[p], z[1 - p], r)

    elapsed = time.time() - t_start

    if verbose:
        print()
        print(f"=== Simulation Complete ===")
        print(f"Total time: {elapsed:.3f} s")
        print(f"Snapshots saved: {len(history)}")
        print()

    return times, history, final, elapsed


# ============================================================================
# MAIN
# ============================================================================

def main(argv=None):
    parser = build_parser('2D heat diffusion, serial reference')
    args = parser.parse_args(argv)

    try:
        config = config_from_args(args)
    except ConfigurationError as exc:
        print(f"error: {exc.phase} failed: {exc}", file=sys.stderr)
        return 1

    times, history, final, elapsed = simulate_serial(
        config, verbose=args.verbose, report=True,
        keep_history=bool(args.output))
    print(f"Elapsed time = {int(round(elapsed * 1000))}")

    if args.output:
        np.savez(args.output,
                 times=np.array(times, dtype=np.int64),
                 snapshots=(np.array(history) if history
                            else np.empty((0, config.size, config.size))),
                 final=(final if final is not None
                        else np.zeros((config.size, config.size))),
                 size=config.size,
                 heat_time=config.heat_time,
                 workers=1)
        if args.verbose:
            print(f"Results saved to: {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
