"""Round coordination for the variable speeds election.

Processes run on their own threads and meet at a reusable barrier once per
round. The last arrival runs the transition step, which is the only place
where staged tokens are committed, the leader is detected and the round
counter moves.
"""

import logging
import threading
from typing import Callable, Iterable

from varspeed.lib.exceptions import (
    DuplicateLeaderError,
    ElectionCancelledError,
    ElectionTimeoutError,
    OrchestrationError,
    TerminationBoundError,
    VariableSpeedsError,
)
from varspeed.lib.models import ProcessOutcome, RoundReport, TokenTransfer
from varspeed.protocol.process import Process, gate_interval

logger = logging.getLogger(__name__)

RoundListener = Callable[[RoundReport], None]


def termination_bound(size: int, minimum: int) -> int:
    """
    Last round in which the leader can recognize itself.

    The minimum token makes ``size`` hops of ``2^minimum`` rounds each and its
    owner notices one round after it comes home. A ring of one elects in
    round 0.
    """
    if size == 1:
        return 0
    return size * gate_interval(minimum) + 1


class RoundCoordinator:
    """
    Drives processes through synchronous rounds.

    Owns the barrier, the round counter and the termination flag. Completion
    is published through an event so callers never poll.
    """

    def __init__(
        self,
        processes: list[Process],
        barrier_timeout: float | None = None,
        listeners: Iterable[RoundListener] | None = None,
    ):
        """
        Initialize the coordinator.

        Args:
            processes: Ring members, already linked
            barrier_timeout: Seconds a process may wait at the barrier
            listeners: Callbacks receiving one RoundReport per round
        """
        if not processes:
            raise OrchestrationError("Cannot coordinate an empty ring")

        self.processes = processes
        self.round = 0
        self.leader_found = False
        self.leader_id: int | None = None
        self.transfers: list[TokenTransfer] = []
        self.bound = termination_bound(
            len(processes), min(p.id for p in processes)
        )
        self.barrier_timeout = barrier_timeout

        self._listeners: list[RoundListener] = list(listeners or [])
        self._barrier = threading.Barrier(
            len(processes), action=self._transition, timeout=barrier_timeout
        )
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._failure: VariableSpeedsError | None = None
        self._threads: list[threading.Thread] = []
        self._remaining = len(processes)
        self._cancelled = threading.Event()
        self._transition_thread: int | None = None

    # -------------------------------------------------------------------------
    # Round boundary
    # -------------------------------------------------------------------------

    def add_listener(self, listener: RoundListener) -> None:
        self._listeners.append(listener)

    def await_round_boundary(self) -> None:
        """Block until every process has finished the current round."""
        self._barrier.wait()

    def _transition(self) -> None:
        """Run once per round by the last process to arrive."""
        self._transition_thread = threading.get_ident()
        try:
            self._advance()
        except Exception as e:
            # The barrier breaks itself when its action raises; aborting here
            # would deadlock on the lock the action runs under
            self._record_failure(e, abort=False)
            raise
        finally:
            self._transition_thread = None

    def _advance(self) -> None:
        round_transfers = []
        for process in self.processes:
            transfer = process.commit()
            if transfer is not None:
                round_transfers.append(transfer)
        self.transfers.extend(round_transfers)

        leaders = [p.id for p in self.processes if p.is_leader]
        if len(leaders) > 1:
            raise DuplicateLeaderError(
                f"Multiple leaders in round {self.round}: {leaders}",
                round_number=self.round,
            )

        if leaders and not self.leader_found:
            self.leader_found = True
            self.leader_id = leaders[0]
            logger.info(f"Leader UID {self.leader_id} elected in round {self.round}")
            for process in self.processes:
                process.notify_leader_found()
        elif not leaders and self.round >= self.bound:
            raise TerminationBoundError(self.bound, self.round)

        report = RoundReport(
            round=self.round,
            leader_found=self.leader_found,
            transfers=round_transfers,
        )
        logger.debug(f"Round {self.round} completed")
        for listener in self._listeners:
            listener(report)

        self.round += 1
        for process in self.processes:
            process.round = self.round

        if self._cancelled.is_set() and not self.leader_found:
            raise ElectionCancelledError(f"Election cancelled in round {self.round}")

    # -------------------------------------------------------------------------
    # Thread management
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start one thread per process."""
        if self._threads:
            raise OrchestrationError("Coordinator already started")

        for process in self.processes:
            thread = threading.Thread(
                target=self._work,
                args=(process,),
                name=f"uid-{process.id}",
                daemon=True,
            )
            self._threads.append(thread)

        for thread in self._threads:
            thread.start()

    def _work(self, process: Process) -> None:
        try:
            process.run(self)
        except threading.BrokenBarrierError:
            self._record_failure(
                ElectionTimeoutError(
                    self.barrier_timeout or 0.0,
                    details={"round": self.round, "process_id": process.id},
                )
            )
        except VariableSpeedsError as e:
            self._record_failure(e)
            logger.error(f"UID {process.id} stopped in round {self.round}: {e.message}")
        except Exception as e:
            self._record_failure(e)
            logger.exception(f"UID {process.id} failed in round {self.round}")
        finally:
            with self._lock:
                self._remaining -= 1
                if self._remaining == 0:
                    self._finished.set()

    def _record_failure(self, error: Exception, abort: bool = True) -> None:
        """Keep the first failure and stop every other process."""
        with self._lock:
            if self._failure is None:
                if isinstance(error, VariableSpeedsError):
                    self._failure = error
                else:
                    failure = OrchestrationError(f"Election aborted: {error}")
                    failure.__cause__ = error
                    self._failure = failure
        if abort:
            self._barrier.abort()

    def cancel(self) -> None:
        """Abort the run. Processes blocked at the barrier are released."""
        if self._finished.is_set() or self.leader_found:
            return
        logger.warning(f"Cancelling election in round {self.round}")
        self._cancelled.set()
        # From inside the transition (a round listener) the barrier cannot be
        # aborted; the transition raises once it completes instead
        self._record_failure(
            ElectionCancelledError(
                f"Election cancelled in round {self.round}",
                details={"round": self.round},
            ),
            abort=self._transition_thread != threading.get_ident(),
        )

    def wait(self, timeout: float | None = None) -> None:
        """
        Block until every process has exited.

        Raises:
            ElectionTimeoutError: If the run does not finish in time
            VariableSpeedsError: The first failure recorded during the run
        """
        if not self._finished.wait(timeout):
            self.cancel()
            self._finished.wait()
            if not self.leader_found:
                raise ElectionTimeoutError(
                    timeout or 0.0, details={"round": self.round}
                )

        for thread in self._threads:
            thread.join()

        if self._failure is not None:
            raise self._failure

    def run(self, timeout: float | None = None) -> list[ProcessOutcome]:
        """Start the processes and wait for a leader."""
        self.start()
        self.wait(timeout)
        return self.outcomes()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    @property
    def failure(self) -> VariableSpeedsError | None:
        return self._failure

    def outcomes(self) -> list[ProcessOutcome]:
        return [p.outcome() for p in self.processes]
