"""Protocol package - processes, ring topology and round coordination."""

from varspeed.protocol.coordinator import (
    RoundCoordinator,
    RoundListener,
    termination_bound,
)
from varspeed.protocol.engine import (
    ElectionEngine,
    create_engine,
    run_election,
)
from varspeed.protocol.process import (
    Process,
    gate_interval,
)
from varspeed.protocol.ring import (
    build_ring,
    successor_index,
    verify_ring,
)

__all__ = [
    # Coordinator
    "RoundCoordinator",
    "RoundListener",
    "termination_bound",
    # Engine
    "ElectionEngine",
    "create_engine",
    "run_election",
    # Process
    "Process",
    "gate_interval",
    # Ring
    "build_ring",
    "successor_index",
    "verify_ring",
]
