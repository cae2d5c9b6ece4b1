"""Utilities to run the MPI solver inside one process for testing.

ThreadComm mimics the slice of the mpi4py communicator API the solver uses.
Ssend blocks until a matching Recv takes the message, like MPI's synchronous
send. A blocked call raises MPI.Exception after `timeout` seconds, so a
deadlock fails the test instead of hanging it.
"""

from concurrent.futures import ThreadPoolExecutor
import queue
import threading

import numpy as np
from mpi4py import MPI

from heat_diffusion.config import HeatConfig
from heat_diffusion.heat_mpi import make_domain_info, simulate_mpi


class ThreadFabric:
    """Message channels shared by the ThreadComm of every rank."""

    def __init__(self, size, timeout=10.0, faults=None):
        self.size = size
        self.timeout = timeout
        # (rank, method name, tag) triples that raise instead of communicating
        self.faults = set(faults or ())
        self._lock = threading.Lock()
        self._channels = {}
        self._barrier = threading.Barrier(size)

    def channel(self, source, dest, tag):
        with self._lock:
            return self._channels.setdefault((source, dest, tag), queue.Queue())

    def comm(self, rank):
        return ThreadComm(self, rank)

    def barrier(self):
        try:
            self._barrier.wait(self.timeout)
        except threading.BrokenBarrierError:
            raise MPI.Exception(MPI.ERR_OTHER)


class ThreadComm:
    def __init__(self, fabric, rank):
        self.fabric = fabric
        self.rank = rank

    def Get_rank(self):
        return self.rank

    def Get_size(self):
        return self.fabric.size

    def _check_fault(self, name, tag):
        if (self.rank, name, tag) in self.fabric.faults:
            raise MPI.Exception(MPI.ERR_OTHER)

    def Ssend(self, buf, dest, tag=0):
        self._check_fault("Ssend", tag)
        done = threading.Event()
        self.fabric.channel(self.rank, dest, tag).put((np.array(buf, copy=True), done))
        if not done.wait(self.fabric.timeout):
            raise MPI.Exception(MPI.ERR_OTHER)

    def Recv(self, buf, source, tag=0):
        self._check_fault("Recv", tag)
        try:
            data, done = self.fabric.channel(source, self.rank, tag).get(
                timeout=self.fabric.timeout)
        except queue.Empty:
            raise MPI.Exception(MPI.ERR_OTHER)
        if data.size != buf.size:
            done.set()
            raise MPI.Exception(MPI.ERR_TRUNCATE)
        buf[...] = data.reshape(buf.shape)
        done.set()

    def Barrier(self):
        self.fabric.barrier()


def run_ranks(worker_count, target, timeout=10.0, faults=None):
    """
    Call target(comm) on `worker_count` threads, one per rank.

    Returns the per-rank return values; re-raises the lowest rank's
    exception if any rank failed.
    """
    fabric = ThreadFabric(worker_count, timeout=timeout, faults=faults)
    with ThreadPoolExecutor(max_workers=worker_count) as pool:
        futures = [pool.submit(target, fabric.comm(rank))
                   for rank in range(worker_count)]
    return [f.result() for f in futures]


def run_simulation(config, worker_count, timeout=10.0):
    """Run simulate_mpi on `worker_count` threaded ranks; return the root's result."""
    def target(comm):
        domain_info = make_domain_info(config.size, comm.Get_rank(), comm.Get_size())
        return simulate_mpi(config, domain_info, comm)

    return run_ranks(worker_count, target, timeout=timeout)[0]


def make_config(size, max_time, heat_time, interval, **kwargs):
    return HeatConfig(size=size, max_time=max_time, heat_time=heat_time,
                      interval=interval, **kwargs).validate()
