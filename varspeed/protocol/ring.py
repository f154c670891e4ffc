"""Ring topology construction."""

import logging

from varspeed.lib.exceptions import TopologyError
from varspeed.lib.models import Roster
from varspeed.protocol.process import Process

logger = logging.getLogger(__name__)


def successor_index(index: int, size: int) -> int:
    """Position of the downstream neighbor; the last process wraps to the first."""
    return (index + 1) % size


def build_ring(roster: Roster) -> list[Process]:
    """
    Create one process per roster entry and link each to its successor.

    Args:
        roster: Validated roster in ring order

    Returns:
        Processes in roster order, each linked to the next
    """
    processes = [Process(uid) for uid in roster.ids]
    size = len(processes)

    for index, process in enumerate(processes):
        process.set_neighbor(processes[successor_index(index, size)])

    verify_ring(processes)
    logger.debug(f"Built ring: {' -> '.join(str(p.id) for p in processes)}")
    return processes


def verify_ring(processes: list[Process]) -> None:
    """Check that neighbor links form exactly one cycle through every process."""
    if not processes:
        raise TopologyError("Ring has no processes")

    start = processes[0]
    seen: set[int] = set()
    current = start

    for _ in range(len(processes)):
        if current.neighbor is None:
            raise TopologyError(f"UID {current.id} has no neighbor", field="neighbor")
        if id(current) in seen:
            raise TopologyError(
                f"Ring closes early at UID {current.id}", field="neighbor"
            )
        seen.add(id(current))
        current = current.neighbor

    if current is not start or seen != {id(p) for p in processes}:
        raise TopologyError(
            f"Following {len(processes)} links from UID {start.id} does not return to it",
            field="neighbor",
        )
