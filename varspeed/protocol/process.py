"""A single ring member running the variable speeds protocol.

Each process holds the smallest identifier it has seen and forwards it to its
downstream neighbor once the gate for that value opens, ``2^m`` rounds after
``m`` arrived. Tokens are staged on the receiver during a round and committed
by the coordinator between rounds, so everything a process reads in round
``r`` reflects the state at the end of round ``r - 1``.
"""

import logging
from typing import TYPE_CHECKING

from varspeed.lib.exceptions import (
    DuplicateLeaderError,
    MonotonicityViolationError,
    ProtocolViolationError,
    TopologyError,
)
from varspeed.lib.models import ProcessOutcome, ProcessState, TokenTransfer

if TYPE_CHECKING:
    from varspeed.protocol.coordinator import RoundCoordinator

logger = logging.getLogger(__name__)


def gate_interval(value: int) -> int:
    """Rounds a token carrying ``value`` waits at each hop."""
    return 1 << value


class Process:
    """
    One member of the ring.

    The process owns its fields for reading. Only its upstream neighbor stages
    deliveries into it, and only the coordinator commits them.
    """

    def __init__(self, uid: int):
        self.id = uid
        self.current_min = uid
        self.min_arrival_round = 0
        self.incoming_token: int | None = None
        self.is_leader = False
        self.neighbor: "Process | None" = None
        self.state = ProcessState.ACTIVE

        # Round counter as last published by the coordinator
        self.round = 0
        self.leader_found = False

        # The current minimum was already forwarded or swallowed
        self.forwarded = False

        self._staged: TokenTransfer | None = None
        self.sent: list[TokenTransfer] = []
        self.history: list[int] = [uid]

    def __repr__(self) -> str:
        return f"Process(id={self.id}, current_min={self.current_min}, state={self.state.value})"

    # -------------------------------------------------------------------------
    # Topology
    # -------------------------------------------------------------------------

    def set_neighbor(self, neighbor: "Process") -> None:
        """Link the downstream neighbor. Links are assigned exactly once."""
        if self.neighbor is not None:
            raise TopologyError(
                f"UID {self.id} already has neighbor {self.neighbor.id}",
                field="neighbor",
                value=neighbor.id,
            )
        self.neighbor = neighbor

    # -------------------------------------------------------------------------
    # Gating
    # -------------------------------------------------------------------------

    def gate_open(self, round_number: int) -> bool:
        """
        Whether exactly ``2^current_min`` rounds have passed since the minimum
        arrived.

        The elapsed count is tested for being that power of two directly, so
        a huge identifier never has ``2^id`` built for it.
        """
        if self.forwarded:
            return False
        elapsed = round_number - self.min_arrival_round
        return (
            elapsed > 0
            and elapsed & (elapsed - 1) == 0
            and elapsed.bit_length() - 1 == self.current_min
        )

    # -------------------------------------------------------------------------
    # Per-round decision
    # -------------------------------------------------------------------------

    def step(self, round_number: int) -> TokenTransfer | None:
        """
        Decide and maybe send for one round.

        Args:
            round_number: Current round

        Returns:
            The transfer staged on the neighbor, if any
        """
        if self.state is not ProcessState.ACTIVE:
            return None

        if self.neighbor is None:
            raise TopologyError(f"UID {self.id} has no neighbor", field="neighbor")

        # Our own id came back around the ring
        if self.incoming_token == self.id:
            self._become_leader(round_number)
            return None

        # A ring of one is circumnavigated before it starts
        if self.neighbor is self:
            self._become_leader(round_number)
            return None

        if not self.gate_open(round_number):
            return None

        # Sent or swallowed, this minimum is done until a smaller one arrives
        self.forwarded = True
        return self._send(round_number)

    def _send(self, round_number: int) -> TokenTransfer | None:
        neighbor = self.neighbor
        token = self.current_min

        if token == neighbor.id:
            if neighbor.current_min != token:
                logger.debug(f"UID {self.id} - Dropping token {token}, owner knows smaller")
                return None
            transfer = TokenTransfer(
                round=round_number,
                sender=self.id,
                receiver=neighbor.id,
                value=token,
                returned_home=True,
            )
        elif token < neighbor.current_min:
            transfer = TokenTransfer(
                round=round_number,
                sender=self.id,
                receiver=neighbor.id,
                value=token,
            )
        else:
            logger.debug(f"UID {self.id} - Token {token} swallowed by {neighbor.id}")
            return None

        logger.debug(f"UID {self.id} - Sending token {token} to {neighbor.id}")
        neighbor.stage(transfer)
        self.sent.append(transfer)
        return transfer

    def _become_leader(self, round_number: int) -> None:
        if self.is_leader:
            raise DuplicateLeaderError(
                f"UID {self.id} became leader twice",
                process_id=self.id,
                round_number=round_number,
            )
        self.is_leader = True
        self.state = ProcessState.LEADER_CONFIRMED
        logger.info(f"UID {self.id} - Own token returned in round {round_number}")

    # -------------------------------------------------------------------------
    # Delivery (driven by the coordinator)
    # -------------------------------------------------------------------------

    def stage(self, transfer: TokenTransfer) -> None:
        """Hold a delivery from the upstream neighbor until the round ends."""
        if self._staged is not None:
            raise ProtocolViolationError(
                f"UID {self.id} received two tokens in round {transfer.round}",
                process_id=self.id,
                round_number=transfer.round,
            )
        self._staged = transfer

    def commit(self) -> TokenTransfer | None:
        """Apply the staged delivery. Called only between rounds."""
        transfer = self._staged
        if transfer is None:
            return None
        self._staged = None

        if transfer.value > self.current_min:
            raise MonotonicityViolationError(
                self.id,
                self.current_min,
                transfer.value,
                round_number=transfer.round,
            )

        if transfer.value < self.current_min:
            self.current_min = transfer.value
            self.min_arrival_round = transfer.round
            self.forwarded = False
            self.history.append(transfer.value)

        self.incoming_token = transfer.value
        return transfer

    # -------------------------------------------------------------------------
    # Termination
    # -------------------------------------------------------------------------

    def notify_leader_found(self) -> None:
        self.leader_found = True

    def confirm(self) -> ProcessState:
        """Settle the terminal state once the coordinator signalled a leader."""
        if self.is_leader:
            self.state = ProcessState.LEADER_CONFIRMED
            logger.info(f"UID {self.id} - I am the leader")
        else:
            self.state = ProcessState.NON_LEADER_CONFIRMED
            logger.info(f"UID {self.id} - I am not the leader")
        return self.state

    def run(self, coordinator: "RoundCoordinator") -> None:
        """Thread body: one step per round until a leader is known."""
        while not self.leader_found:
            self.step(self.round)
            coordinator.await_round_boundary()
        self.confirm()

    def outcome(self) -> ProcessOutcome:
        return ProcessOutcome(
            id=self.id,
            is_leader=self.is_leader,
            current_min=self.current_min,
            state=self.state,
        )
