"""
Run and Compare - Automated Testing Script
==========================================

This script:
1. Runs the serial version
2. Runs the MPI version
3. Loads both output .npz files
4. Compares them snapshot by snapshot

Usage:
    # Compare serial vs MPI with 4 processes, 64x64 grid
    python -m heat_diffusion.run_and_compare

    # Custom grid and process count
    python -m heat_diffusion.run_and_compare --grid-size 100 --nprocs 5 --steps 500
"""

import argparse
import subprocess
import sys
import time
from pathlib import Path

import numpy as np


def _run(cmd, output_file, label):
    """Run one solver, returning elapsed seconds; exit on failure."""
    if output_file.exists():
        output_file.unlink()
        print(f"Deleted old output: {output_file}")

    print(f"Command: {' '.join(cmd)}")
    print()

    start = time.time()
    result = subprocess.run(cmd, capture_output=True, text=True)
    elapsed = time.time() - start

    if result.returncode != 0:
        print(f"ERROR: {label} version failed with code {result.returncode}")
        if result.stderr:
            print(result.stderr)
        sys.exit(1)

    if not output_file.exists():
        print(f"ERROR: Expected output file not found: {output_file}")
        sys.exit(1)

    print(f"✓ {label} version complete in {elapsed:.2f}s")
    print(f"✓ Output: {output_file}")
    print()
    return elapsed


def solver_args(grid_size, steps, heat_time, interval, output_file):
    return [str(grid_size), str(steps), str(heat_time), str(interval),
            "--output", str(output_file)]


def run_serial(grid_size, steps, heat_time, interval, output_dir):
    """
    Run the serial version

    Returns
    -------
    output_file : Path
        Path to output .npz file
    elapsed : float
        Time taken in seconds
    """
    print("=" * 70)
    print("STEP 1: Running Serial Version")
    print("=" * 70)

    output_file = output_dir / f"heat_serial_{grid_size}x{grid_size}.npz"
    cmd = [sys.executable, "-m", "heat_diffusion.heat_serial",
           *solver_args(grid_size, steps, heat_time, interval, output_file)]
    return output_file, _run(cmd, output_file, "Serial")


def run_mpi(grid_size, steps, heat_time, interval, nprocs, output_dir,
            launcher="mpirun"):
    """
    Run the MPI version

    Returns
    -------
    output_file : Path
        Path to output .npz file
    elapsed : float
        Time taken in seconds
    """
    print("=" * 70)
    print("STEP 2: Running MPI Version")
    print("=" * 70)

    output_file = output_dir / f"heat_mpi_{nprocs}procs_{grid_size}x{grid_size}.npz"
    cmd = [launcher, "-n", str(nprocs), sys.executable, "-m",
           "heat_diffusion.heat_mpi",
           *solver_args(grid_size, steps, heat_time, interval, output_file)]
    return output_file, _run(cmd, output_file, "MPI")


def verdict_for(max_error):
    """Classify the largest absolute difference between two runs."""
    if max_error == 0.0:
        return "PERFECT MATCH", True
    if max_error < 1e-10:
        return "EXCELLENT (within numerical precision)", True
    if max_error < 1e-6:
        return "GOOD (small differences)", True
    return "POOR (large differences)", False


def compare_npz_files(serial_file, mpi_file):
    """
    Load and compare two solver output files.

    Returns
    -------
    comparison : dict
        Keys: metadata_match, field_match, max_error, mean_error, verdict
    """
    print("=" * 70)
    print("STEP 3: Comparing Output Files")
    print("=" * 70)
    print()

    serial_data = np.load(serial_file)
    mpi_data = np.load(mpi_file)

    times_serial = serial_data['times']
    times_mpi = mpi_data['times']
    snaps_serial = serial_data['snapshots']
    snaps_mpi = mpi_data['snapshots']

    print("-" * 70)
    print("METADATA COMPARISON")
    print("-" * 70)

    metadata_match = True
    if int(serial_data['size']) != int(mpi_data['size']):
        print(f"✗ Grid sizes differ: {int(serial_data['size'])} vs {int(mpi_data['size'])}")
        metadata_match = False
    else:
        print(f"✓ Grid size: {int(serial_data['size'])}")

    if len(times_serial) != len(times_mpi) or not np.array_equal(times_serial, times_mpi):
        print(f"✗ Snapshot times differ: {len(times_serial)} vs {len(times_mpi)} snapshots")
        metadata_match = False
    else:
        print(f"✓ Snapshot times match ({len(times_serial)} snapshots)")
    print()

    if not metadata_match:
        return {
            'metadata_match': False,
            'field_match': False,
            'max_error': float('inf'),
            'mean_error': float('inf'),
            'verdict': "MISMATCHED RUNS",
        }

    print("-" * 70)
    print("TEMPERATURE COMPARISON")
    print("-" * 70)
    print("Snapshot    Time    Max Error    Mean Error")

    max_errors = []
    mean_errors = []
    pairs = list(zip(snaps_serial, snaps_mpi))
    pairs.append((serial_data['final'], mpi_data['final']))
    labels = [int(t) for t in times_serial] + ["final"]

    for i, ((a, b), label) in enumerate(zip(pairs, labels)):
        diff = np.abs(a - b)
        max_errors.append(diff.max())
        mean_errors.append(diff.mean())
        if i % 10 == 0 or i == len(pairs) - 1:
            print(f"{i:8d}    {str(label):>6}    {diff.max():10.3e}    {diff.mean():10.3e}")

    overall_max = float(np.max(max_errors))
    overall_mean = float(np.mean(mean_errors))
    verdict, field_match = verdict_for(overall_max)

    print()
    print(f"Overall Maximum Error: {overall_max:.3e}")
    print(f"Overall Mean Error:    {overall_mean:.3e}")
    print(f"{'✓' if field_match else '✗'} {verdict}")
    print()

    return {
        'metadata_match': metadata_match,
        'field_match': field_match,
        'max_error': overall_max,
        'mean_error': overall_mean,
        'verdict': verdict,
    }


def main(argv=None):
    parser = argparse.ArgumentParser(description='Run and compare serial vs MPI heat solvers')
    parser.add_argument('--grid-size', type=int, default=64,
                        help='Grid size (default: 64)')
    parser.add_argument('--nprocs', type=int, default=4,
                        help='Number of MPI processes (default: 4)')
    parser.add_argument('--steps', type=int, default=200,
                        help='Number of time steps (default: 200)')
    parser.add_argument('--heat-time', type=int, default=100,
                        help='Steps with the heat source on (default: 100)')
    parser.add_argument('--interval', type=int, default=20,
                        help='Snapshot interval (default: 20)')
    parser.add_argument('--output-dir', default='output',
                        help='Directory for .npz files (default: output)')
    parser.add_argument('--launcher', default='mpirun',
                        help='MPI launcher (default: mpirun)')
    args = parser.parse_args(argv)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print()
    print("=" * 70)
    print("HEAT DIFFUSION - SERIAL vs MPI COMPARISON")
    print("=" * 70)
    print(f"Grid size: {args.grid_size} x {args.grid_size}")
    print(f"MPI processes: {args.nprocs}")
    print()

    serial_file, serial_time = run_serial(
        args.grid_size, args.steps, args.heat_time, args.interval, output_dir)
    mpi_file, mpi_time = run_mpi(
        args.grid_size, args.steps, args.heat_time, args.interval,
        args.nprocs, output_dir, launcher=args.launcher)

    comparison = compare_npz_files(serial_file, mpi_file)

    print("=" * 70)
    print("FINAL SUMMARY")
    print("=" * 70)
    print(f"  Serial time:  {serial_time:6.2f} s")
    print(f"  MPI time:     {mpi_time:6.2f} s")
    if mpi_time > 0:
        print(f"  Speedup:      {serial_time / mpi_time:6.2f} x")
    print(f"  Max error:    {comparison['max_error']:.3e}")
    print(f"  Verdict:      {comparison['verdict']}")
    print("=" * 70)

    return 0 if comparison['field_match'] else 1


if __name__ == "__main__":
    sys.exit(main())
