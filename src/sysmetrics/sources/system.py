from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import psutil

from .result import Fetched, ScalarSource, VectorSource

# psutil raises its own errors plus plain OSError from /proc reads
_SOURCE_ERRORS = (psutil.Error, OSError, RuntimeError)


def cpu_usage() -> Fetched[float]:
    """System-wide CPU utilisation (percent) since the previous call."""
    try:
        return Fetched.from_scalar(psutil.cpu_percent(interval=None))
    except _SOURCE_ERRORS as e:
        return Fetched.failure(str(e))


def memory_triple() -> Fetched[Tuple[float, ...]]:
    """(total, free, used) in bytes. 'free' is what is available to new processes."""
    try:
        vm = psutil.virtual_memory()
    except _SOURCE_ERRORS as e:
        return Fetched.failure(str(e))
    return Fetched.from_vector((vm.total, vm.available, vm.used))


def context_switches() -> Fetched[float]:
    try:
        return Fetched.from_scalar(psutil.cpu_stats().ctx_switches)
    except _SOURCE_ERRORS as e:
        return Fetched.failure(str(e))


def running_processes() -> Fetched[float]:
    try:
        n = 0
        for p in psutil.process_iter(["status"]):
            if p.info.get("status") == psutil.STATUS_RUNNING:
                n += 1
    except _SOURCE_ERRORS as e:
        return Fetched.failure(str(e))
    return Fetched.from_scalar(n)


def disk_reads_writes() -> Fetched[Tuple[float, ...]]:
    """Completed disk (reads, writes) across all devices."""
    try:
        io = psutil.disk_io_counters()
    except _SOURCE_ERRORS as e:
        return Fetched.failure(str(e))
    if io is None:
        return Fetched.failure("no disk counters")
    return Fetched.from_vector((io.read_count, io.write_count))


def rx_tx_packets() -> Fetched[Tuple[float, ...]]:
    """Network (received, transmitted) packets across all interfaces."""
    try:
        net = psutil.net_io_counters()
    except _SOURCE_ERRORS as e:
        return Fetched.failure(str(e))
    if net is None:
        return Fetched.failure("no network counters")
    return Fetched.from_vector((net.packets_recv, net.packets_sent))


@dataclass
class HostSources:
    """The host data sources one exporter samples; tests swap in fakes."""
    cpu: ScalarSource = cpu_usage
    memory: VectorSource = memory_triple
    context_switches: ScalarSource = context_switches
    running_processes: ScalarSource = running_processes
    disk: VectorSource = disk_reads_writes
    network: VectorSource = rx_tx_packets
