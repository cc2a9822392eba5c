"""Probes run through a proxy tunnel: connectivity and throughput."""

from proxytester.probes.connectivity import ConnectivityProbe, ConnectivityResult
from proxytester.probes.throughput import (
    ThroughputProbe,
    ThroughputResult,
    compute_throughput_kbps,
)

__all__ = [
    "ConnectivityProbe",
    "ConnectivityResult",
    "ThroughputProbe",
    "ThroughputResult",
    "compute_throughput_kbps",
]
