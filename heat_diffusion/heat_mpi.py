"""
2D Heat Diffusion with MPI
==========================

Explicit forward Euler solution of the 2D heat equation on a size x size
grid, distributed over a fixed group of MPI ranks.

DOMAIN DECOMPOSITION STRATEGY:
1D decomposition along x - each rank owns a contiguous block of rows,
the last rank takes any remainder rows:

    Rank 0: [========]   rows [0, slice-1]
    Rank 1: [========]   rows [slice, 2*slice-1]
    ...
    Rank n-1: [==========]  rows [(n-1)*slice, size-1]

Every rank keeps a full size x size double buffer but only fills the rows it
owns plus one halo row on each side. Rank 0 additionally gathers every
rank's rows each step so it can print snapshots.

Usage:
    mpirun -n 4 python -m heat_diffusion.heat_mpi size max_time heat_time interval
    mpirun -n 4 python -m heat_diffusion.heat_mpi 100 1000 500 100 --output out.npz
"""

import sys
from dataclasses import dataclass, field as dataclass_field
from typing import List, Optional, Tuple

import numpy as np
from mpi4py import MPI

from heat_diffusion.config import HEAT_TEMPERATURE, build_parser, config_from_args
from heat_diffusion.errors import (
    ConfigurationError,
    ExchangeError,
    GatherError,
    HeatDiffusionError,
)

# ============================================================================
# MESSAGE TAGS
# ============================================================================
HALO_TAG = 1      # neighbor boundary rows
GATHER_TAG = 2    # root <-> worker gather traffic

REQUEST_BOUNDS = 0
REQUEST_BLOCK = 1


# ============================================================================
# STEP 1: Domain Decomposition
# ============================================================================

def partition_rows(size, worker_count):
    """
    Split `size` rows into `worker_count` contiguous inclusive ranges.

    Every rank gets size // worker_count rows; the last rank also absorbs
    the remainder size % worker_count.

    Returns
    -------
    ranges : list of (start, end)
        Inclusive row range for each rank, indexed by rank.
    """
    if worker_count < 1:
        raise ConfigurationError(
            f"worker count must be positive, got {worker_count}",
            phase="partitioning")
    if worker_count > size:
        raise ConfigurationError(
            f"cannot split {size} rows over {worker_count} workers "
            f"(at most one worker per row)",
            phase="partitioning")

    slice_rows = size // worker_count
    ranges = []
    for rank in range(worker_count):
        start = slice_rows * rank
        end = start + slice_rows - 1
        if rank == worker_count - 1:
            end = size - 1
        ranges.append((start, end))
    return ranges


@dataclass(frozen=True)
class DomainInfo:
    """Per-rank view of the decomposition, fixed for the whole run."""
    rank: int
    worker_count: int
    grid_size: int
    start: int
    end: int
    left_neighbor: int
    right_neighbor: int
    ranges: Tuple[Tuple[int, int], ...]

    @property
    def is_root(self):
        return self.rank == 0

    @property
    def owns_left_edge(self):
        return self.start == 0

    @property
    def owns_right_edge(self):
        return self.end == self.grid_size - 1

    @property
    def owned_rows(self):
        return self.end - self.start + 1


def make_domain_info(grid_size, rank, worker_count):
    """Build the DomainInfo of `rank` in a group of `worker_count` workers."""
    ranges = partition_rows(grid_size, worker_count)
    start, end = ranges[rank]
    return DomainInfo(
        rank=rank,
        worker_count=worker_count,
        grid_size=grid_size,
        start=start,
        end=end,
        left_neighbor=rank - 1 if rank > 0 else MPI.PROC_NULL,
        right_neighbor=rank + 1 if rank < worker_count - 1 else MPI.PROC_NULL,
        ranges=tuple(ranges),
    )


def setup_domain_decomposition(grid_size, comm):
    """Decompose the grid over the ranks of `comm`."""
    return make_domain_info(grid_size, comm.Get_rank(), comm.Get_size())


def allocate_field(grid_size):
    """Zero-initialized double buffer, indexed [phase, x, y]."""
    return np.zeros((2, grid_size, grid_size), dtype=np.float64)


# ============================================================================
# STEP 2: Boundary Conditions
# ============================================================================

def heat_band(grid_size):
    """Half-open row range [lo, hi) heated along y = 0."""
    return grid_size // 3, 2 * grid_size // 3


def owned_heat_rows(domain_info):
    """
    Intersection of the heat band with this rank's rows.

    Returns (lo, hi) as a half-open range, possibly empty (lo >= hi).
    """
    lo, hi = heat_band(domain_info.grid_size)
    return max(lo, domain_info.start), min(hi, domain_info.end + 1)


def enforce_boundaries(field, phase, t, config, domain_info):
    """
    Apply the insulated edges and the heat source to the current phase.

    Order matters and matches the single-process solver:
    1. edge owners copy row 1 -> row 0 and row size-2 -> row size-1
    2. every rank copies column 1 -> 0 and size-2 -> size-1 on its rows
    3. while t < heat_time, owned rows of the heat band get y = 0 set hot
    """
    cur = field[phase]
    size = domain_info.grid_size
    start, end = domain_info.start, domain_info.end

    if domain_info.owns_left_edge:
        cur[0, :] = cur[1, :]
    if domain_info.owns_right_edge:
        cur[size - 1, :] = cur[size - 2, :]

    rows = slice(start, end + 1)
    cur[rows, 0] = cur[rows, 1]
    cur[rows, size - 1] = cur[rows, size - 2]

    if t < config.heat_time:
        lo, hi = owned_heat_rows(domain_info)
        if lo < hi:
            cur[lo:hi, 0] = HEAT_TEMPERATURE


def reconcile_edge_rows(field, phase, t, config, domain_info):
    """
    Re-derive global edge rows whose source row arrived by halo exchange.

    Row 0 is a copy of row 1 (and row size-1 of row size-2). When a rank
    owns only one of the pair, the copy made in enforce_boundaries read a
    halo that was a step old. Must run after exchange_halo.
    """
    if domain_info.worker_count == 1:
        return

    cur = field[phase]
    size = domain_info.grid_size
    start, end = domain_info.start, domain_info.end

    # row 0 / row size-1 is our halo; its owner filled it from a stale copy
    if start == 1:
        cur[0, :] = cur[1, :]
    if end == size - 2:
        cur[size - 1, :] = cur[size - 2, :]

    # single-row edge slices: redo the whole rule set with the fresh halo
    if start == end and (start == 0 or end == size - 1):
        enforce_boundaries(field, phase, t, config, domain_info)


# ============================================================================
# STEP 3: Halo Exchange
# ============================================================================

def _send_row(comm, row, dest, rank):
    try:
        comm.Ssend(np.ascontiguousarray(row), dest=dest, tag=HALO_TAG)
    except MPI.Exception as exc:
        raise ExchangeError(
            f"sending boundary row from rank {rank} to rank {dest} failed: {exc}",
            rank=rank) from exc


def _recv_row(comm, size, source, rank):
    buf = np.empty(size, dtype=np.float64)
    try:
        comm.Recv(buf, source=source, tag=HALO_TAG)
    except MPI.Exception as exc:
        raise ExchangeError(
            f"receiving halo row on rank {rank} from rank {source} failed: {exc}",
            rank=rank) from exc
    return buf


def exchange_halo(field, phase, domain_info, comm):
    """
    Exchange boundary rows with the neighboring ranks.

    Sends are synchronous (Ssend), so every send must meet a receive that
    is already posted or about to be. Ranks are paired by parity:

        even rank: send right, send left, recv right, recv left
        odd rank:  recv right, recv left, send right, send left

    Neighbors that do not exist are skipped.

    Field layout for a rank owning [start, end]:
        cur[start - 1, :]  <- halo (from left neighbor's `end` row)
        cur[start, :]      <- first owned row (to left neighbor)
        ...
        cur[end, :]        <- last owned row (to right neighbor)
        cur[end + 1, :]    <- halo (from right neighbor's `start` row)
    """
    if domain_info.worker_count == 1:
        return

    cur = field[phase]
    size = domain_info.grid_size
    rank = domain_info.rank
    left = domain_info.left_neighbor
    right = domain_info.right_neighbor
    has_left = left != MPI.PROC_NULL
    has_right = right != MPI.PROC_NULL

    def send_all():
        if has_right:
            _send_row(comm, cur[domain_info.end, :], right, rank)
        if has_left:
            _send_row(comm, cur[domain_info.start, :], left, rank)

    def recv_all():
        if has_right:
            cur[domain_info.end + 1, :] = _recv_row(comm, size, right, rank)
        if has_left:
            cur[domain_info.start - 1, :] = _recv_row(comm, size, left, rank)

    if rank % 2 == 0:
        send_all()
        recv_all()
    else:
        recv_all()
        send_all()


# ============================================================================
# STEP 4: Forward Euler Update
# ============================================================================

def forward_euler(field, phase, r, domain_info):
    """
    One explicit Euler step of this rank's interior rows.

    Reads field[phase], writes field[1 - phase]. Global edge rows (0 and
    size-1) and edge columns are left to the boundary rules.
    """
    size = domain_info.grid_size
    lo = max(domain_info.start, 1)
    hi = min(domain_info.end, size - 2)
    if lo > hi:
        return

    cur = field[phase]
    nxt = field[1 - phase]

    center = cur[lo:hi + 1, 1:-1]
    right = cur[lo + 1:hi + 2, 1:-1]
    left = cur[lo - 1:hi, 1:-1]
    up = cur[lo:hi + 1, 2:]
    down = cur[lo:hi + 1, :-2]

    nxt[lo:hi + 1, 1:-1] = (center
                            + r * (right - 2 * center + left)
                            + r * (up - 2 * center + down))


# ============================================================================
# STEP 5: Gathering and Reporting
# ============================================================================

def _gather_send(comm, buf, dest, rank, what):
    try:
        comm.Ssend(buf, dest=dest, tag=GATHER_TAG)
    except MPI.Exception as exc:
        raise GatherError(
            f"rank {rank} could not send {what} to rank {dest}: {exc}",
            rank=rank) from exc


def _gather_recv(comm, buf, source, rank, what):
    try:
        comm.Recv(buf, source=source, tag=GATHER_TAG)
    except MPI.Exception as exc:
        raise GatherError(
            f"rank {rank} could not receive {what} from rank {source}: {exc}",
            rank=rank) from exc
    return buf


def gather_field(field, phase, t, domain_info, comm):
    """
    Reassemble the full current phase on the root.

    For each other rank in turn: ask for its row bounds, check them against
    the partition, ask for its rows and copy them into our own buffer.

    Returns
    -------
    snapshot : np.ndarray, shape (size, size)
        Copy of the assembled current phase.
    """
    size = domain_info.grid_size
    rank = domain_info.rank
    cur = field[phase]

    for source in range(1, domain_info.worker_count):
        request = np.array([t, REQUEST_BOUNDS], dtype=np.int64)
        _gather_send(comm, request, source, rank, "bounds request")
        bounds = _gather_recv(comm, np.empty(2, dtype=np.int64), source, rank,
                              "row bounds")
        start, end = int(bounds[0]), int(bounds[1])
        if (start, end) != tuple(domain_info.ranges[source]):
            raise GatherError(
                f"rank {source} reported rows [{start}, {end}] at t={t} but "
                f"owns {list(domain_info.ranges[source])}", rank=rank)

        request = np.array([t, REQUEST_BLOCK], dtype=np.int64)
        _gather_send(comm, request, source, rank, "block request")
        block = np.empty((end - start + 1) * size, dtype=np.float64)
        _gather_recv(comm, block, source, rank, "row block")
        cur[start:end + 1, :] = block.reshape(end - start + 1, size)

    return cur.copy()


def _expect_request(comm, t, kind, rank):
    request = _gather_recv(comm, np.empty(2, dtype=np.int64), 0, rank,
                           "gather request")
    if int(request[0]) != t or int(request[1]) != kind:
        raise GatherError(
            f"rank {rank} at t={t} expected request kind {kind} but root sent "
            f"kind {int(request[1])} for t={int(request[0])}", rank=rank)


def serve_gather(field, phase, t, domain_info, comm):
    """Answer the root's two gather requests for this timestep."""
    rank = domain_info.rank
    start, end = domain_info.start, domain_info.end

    _expect_request(comm, t, REQUEST_BOUNDS, rank)
    _gather_send(comm, np.array([start, end], dtype=np.int64), 0, rank,
                 "row bounds")

    _expect_request(comm, t, REQUEST_BLOCK, rank)
    block = np.ascontiguousarray(field[phase, start:end + 1, :]).ravel()
    _gather_send(comm, block, 0, rank, "row block")


def should_report(t, interval, max_time):
    """Snapshots every `interval` steps and at the last step."""
    return interval != 0 and (t % interval == 0 or t == max_time - 1)


def format_snapshot(t, snapshot):
    """
    Text of one snapshot: a "time = t" line, then one line per y holding
    floor(value / 2) for every x, then a blank line.
    """
    halves = np.floor(snapshot / 2).astype(np.int64)
    lines = [f"time = {t}"]
    for y in range(halves.shape[1]):
        lines.append(" ".join(str(v) for v in halves[:, y]))
    lines.append("")
    return "\n".join(lines)


def print_snapshot(t, snapshot):
    print(format_snapshot(t, snapshot), flush=True)


# ============================================================================
# STEP 6: Main Simulation Loop
# ============================================================================

@dataclass
class SimulationResult:
    """What the root knows at the end of a run."""
    times: List[int] = dataclass_field(default_factory=list)
    snapshots: List[np.ndarray] = dataclass_field(default_factory=list)
    final_snapshot: Optional[np.ndarray] = None
    field: Optional[np.ndarray] = None
    elapsed_ms: int = 0


def simulate_mpi(config, domain_info, comm, verbose=False, keep_history=True):
    """
    Run the full distributed simulation.

    Parameters
    ----------
    config : HeatConfig
        Validated run parameters.
    domain_info : DomainInfo
        From setup_domain_decomposition.
    comm : MPI.Comm
        Communicator (or anything with Get_rank/Get_size/Ssend/Recv/Barrier).
    verbose : bool
        Print a run banner on the root.
    keep_history : bool
        Keep every reported snapshot in the result. When False only the
        final snapshot is kept.

    Returns
    -------
    result : SimulationResult or None
        Snapshot history and timing on the root, None on other ranks.
    """
    is_root = domain_info.is_root
    field = allocate_field(config.size)
    r = config.r
    result = SimulationResult() if is_root else None

    if is_root and verbose:
        print(f"Starting MPI simulation:")
        print(f"  Grid: {config.size} x {config.size}")
        print(f"  MPI ranks: {domain_info.worker_count}")
        print(f"  Steps: {config.max_time} (heat on for {config.heat_time})")
        print(f"  Diffusion coefficient r = {r}")
        print()

    # Barrier to sync before timing
    comm.Barrier()
    t_start = MPI.Wtime()

    for t in range(config.max_time):
        phase = t % 2

        enforce_boundaries(field, phase, t, config, domain_info)
        exchange_halo(field, phase, domain_info, comm)
        reconcile_edge_rows(field, phase, t, config, domain_info)

        if is_root:
            snapshot = gather_field(field, phase, t, domain_info, comm)
            result.final_snapshot = snapshot
            if should_report(t, config.interval, config.max_time):
                print_snapshot(t, snapshot)
                if keep_history:
                    result.times.append(t)
                    result.snapshots.append(snapshot)
        else:
            serve_gather(field, phase, t, domain_info, comm)

        forward_euler(field, phase, r, domain_info)

    comm.Barrier()
    t_end = MPI.Wtime()

    if is_root:
        result.elapsed_ms = int(round((t_end - t_start) * 1000))
        result.field = field
        print(f"Elapsed time = {result.elapsed_ms}", flush=True)

    return result


def save_result(output_file, config, result, worker_count):
    """Write the root's snapshot history to an .npz file."""
    snapshots = (np.array(result.snapshots) if result.snapshots
                 else np.empty((0, config.size, config.size)))
    np.savez(output_file,
             times=np.array(result.times, dtype=np.int64),
             snapshots=snapshots,
             final=(result.final_snapshot if result.final_snapshot is not None
                    else np.zeros((config.size, config.size))),
             size=config.size,
             heat_time=config.heat_time,
             workers=worker_count)


def main(argv=None):
    parser = build_parser('2D heat diffusion, MPI row decomposition')
    args = parser.parse_args(argv)

    comm = MPI.COMM_WORLD
    rank = comm.Get_rank()

    try:
        config = config_from_args(args)
        domain_info = setup_domain_decomposition(config.size, comm)
    except ConfigurationError as exc:
        # every rank fails the same way, no need to abort the group
        if rank == 0:
            print(f"error: {exc.phase} failed on rank {rank}: {exc}",
                  file=sys.stderr)
        return 1

    try:
        result = simulate_mpi(config, domain_info, comm, verbose=args.verbose,
                              keep_history=bool(args.output))
    except HeatDiffusionError as exc:
        print(f"error: {exc.phase} failed on rank {rank}: {exc}",
              file=sys.stderr, flush=True)
        comm.Abort(1)
        return 1

    if rank == 0 and args.output:
        save_result(args.output, config, result, domain_info.worker_count)
        if args.verbose:
            print(f"Results saved to {args.output}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
