"Tests for the row partitioner and per-rank domain info"
from mpi4py import MPI
import pytest

from heat_diffusion.errors import ConfigurationError
from heat_diffusion.heat_mpi import make_domain_info, partition_rows


@pytest.mark.parametrize("size", [3, 5, 12, 17, 64])
def test_partition_covers_grid_exactly_once(size):
    """Ranges are contiguous, non-overlapping and cover [0, size-1]."""
    for worker_count in range(1, size + 1):
        ranges = partition_rows(size, worker_count)

        assert len(ranges) == worker_count
        assert ranges[0][0] == 0
        assert ranges[-1][1] == size - 1
        for (_, prev_end), (start, _) in zip(ranges, ranges[1:]):
            assert start == prev_end + 1
        for start, end in ranges:
            assert start <= end


@pytest.mark.parametrize("size,worker_count", [(12, 5), (17, 4), (10, 3), (64, 7)])
def test_last_rank_absorbs_remainder(size, worker_count):
    ranges = partition_rows(size, worker_count)
    slice_rows = size // worker_count

    for start, end in ranges[:-1]:
        assert end - start + 1 == slice_rows
    start, end = ranges[-1]
    assert end - start + 1 == slice_rows + size % worker_count


def test_partition_even_split():
    assert partition_rows(12, 4) == [(0, 2), (3, 5), (6, 8), (9, 11)]


def test_partition_uneven_split():
    assert partition_rows(12, 5) == [(0, 1), (2, 3), (4, 5), (6, 7), (8, 11)]


def test_partition_rejects_more_workers_than_rows():
    with pytest.raises(ConfigurationError) as excinfo:
        partition_rows(4, 5)
    assert excinfo.value.phase == "partitioning"


def test_partition_rejects_empty_group():
    with pytest.raises(ConfigurationError):
        partition_rows(4, 0)


def test_domain_info_neighbors_and_edges():
    first = make_domain_info(12, 0, 3)
    middle = make_domain_info(12, 1, 3)
    last = make_domain_info(12, 2, 3)

    assert first.is_root and first.owns_left_edge and not first.owns_right_edge
    assert first.left_neighbor == MPI.PROC_NULL
    assert first.right_neighbor == 1

    assert (middle.start, middle.end) == (4, 7)
    assert (middle.left_neighbor, middle.right_neighbor) == (0, 2)
    assert not middle.owns_left_edge and not middle.owns_right_edge

    assert last.owns_right_edge
    assert last.right_neighbor == MPI.PROC_NULL
    assert last.ranges == ((0, 3), (4, 7), (8, 11))


def test_single_worker_owns_both_edges():
    info = make_domain_info(8, 0, 1)
    assert info.owns_left_edge and info.owns_right_edge
    assert info.owned_rows == 8
    assert info.left_neighbor == MPI.PROC_NULL
    assert info.right_neighbor == MPI.PROC_NULL
