"""
Election behaviour tests.

Scenarios run twice: once through the single-threaded ``simulate`` fixture
and once through the threaded engine, which must agree round for round.
"""

import random

import pytest

from varspeed.lib.exceptions import DuplicateIdentifierError
from varspeed.lib.models import ElectionStatus, ProcessState, TokenTransfer
from varspeed.lib.roster import build_roster
from varspeed.protocol.coordinator import termination_bound
from varspeed.protocol.engine import run_election
from varspeed.protocol.process import gate_interval

SCENARIOS = [
    # ids, leader, completed rounds
    ([5, 3, 8, 1, 9], 1, 12),
    ([1], 1, 1),
    ([2, 1], 1, 6),
    ([100, 0, 50, 25], 0, 6),
    ([1, 10, 11, 2, 12], 1, 12),
]


def random_rosters(seed: int, count: int, max_id: int, max_size: int) -> list[list[int]]:
    rng = random.Random(seed)
    rosters = []
    for _ in range(count):
        size = rng.randint(1, max_size)
        rosters.append(rng.sample(range(max_id + 1), size))
    return rosters


def assert_properties(ids, processes, rounds):
    """Check uniqueness, correctness, monotonicity, gating and the bound."""
    leaders = [p.id for p in processes if p.is_leader]
    assert leaders == [min(ids)]

    for process in processes:
        assert process.history == sorted(process.history, reverse=True)
        assert process.state in (
            ProcessState.LEADER_CONFIRMED,
            ProcessState.NON_LEADER_CONFIRMED,
        )

        for earlier, later in zip(process.sent, process.sent[1:]):
            assert later.round - earlier.round >= gate_interval(later.value)

    if len(ids) == 1:
        assert rounds == 1
    else:
        assert rounds == termination_bound(len(ids), min(ids)) + 1


# =============================================================================
# Single-threaded protocol
# =============================================================================


@pytest.mark.parametrize("ids,leader,rounds", SCENARIOS)
def test_scenarios_simulated(simulate, ids, leader, rounds):
    processes, completed = simulate(ids)

    assert [p.id for p in processes if p.is_leader] == [leader]
    assert completed == rounds


def test_minimum_token_path(simulate):
    processes, _ = simulate([100, 0, 50, 25])
    sent = {p.id: p.sent for p in processes}

    assert sent[0] == [TokenTransfer(round=1, sender=0, receiver=50, value=0)]
    assert sent[50] == [TokenTransfer(round=2, sender=50, receiver=25, value=0)]
    assert sent[25] == [TokenTransfer(round=3, sender=25, receiver=100, value=0)]
    assert sent[100] == [
        TokenTransfer(round=4, sender=100, receiver=0, value=0, returned_home=True)
    ]


def test_larger_token_travels_until_overtaken(simulate):
    processes, _ = simulate([1, 10, 11, 2, 12])
    by_id = {p.id: p for p in processes}

    assert by_id[12].history == [12, 2, 1]
    assert [(t.round, t.value) for t in by_id[2].sent] == [(4, 2), (8, 1)]
    assert [(t.round, t.value) for t in by_id[12].sent] == [(10, 1)]


@pytest.mark.parametrize("ids", random_rosters(seed=7, count=40, max_id=10, max_size=8))
def test_properties_simulated(simulate, ids):
    processes, rounds = simulate(ids, max_rounds=20_000)
    assert_properties(ids, processes, rounds)


# =============================================================================
# Threaded engine
# =============================================================================


@pytest.mark.parametrize("ids,leader,rounds", SCENARIOS)
def test_scenarios_threaded(settings, ids, leader, rounds):
    result = run_election(build_roster(ids), settings)

    assert result.status is ElectionStatus.ELECTED
    assert result.leader_id == leader
    assert result.leaders == [leader]
    assert result.rounds == rounds
    assert [o.id for o in result.outcomes] == ids
    assert result.finished_at is not None


@pytest.mark.parametrize("ids", random_rosters(seed=11, count=12, max_id=6, max_size=6))
def test_threaded_matches_simulation(simulate, settings, ids):
    processes, rounds = simulate(ids)
    result = run_election(build_roster(ids), settings)

    assert result.leader_id == min(ids)
    assert result.rounds == rounds
    assert result.transfers == sorted(
        (t for p in processes for t in p.sent), key=lambda t: (t.round, ids.index(t.receiver))
    )


def test_huge_identifier_beside_small_minimum(settings):
    result = run_election(build_roster([0, 10**12]), settings)

    assert result.status is ElectionStatus.ELECTED
    assert result.leader_id == 0
    assert result.rounds == termination_bound(2, 0) + 1


def test_same_roster_same_leader(settings):
    roster = build_roster([7, 4, 9, 2, 6, 3])

    results = [run_election(roster, settings) for _ in range(3)]

    assert {r.leader_id for r in results} == {2}
    assert len({r.election_id for r in results}) == 3
    assert len({r.rounds for r in results}) == 1


def test_outcomes_report_single_leader(settings):
    result = run_election(build_roster([100, 0, 50, 25]), settings)

    for outcome in result.outcomes:
        assert outcome.is_leader == (outcome.id == 0)
        assert outcome.current_min <= outcome.id


def test_duplicate_roster_refused():
    with pytest.raises(DuplicateIdentifierError):
        build_roster([4, 4, 1])
