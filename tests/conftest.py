"""Shared fixtures for the election tests."""

import pytest

from varspeed.config import Settings, reset_settings
from varspeed.lib.roster import build_roster
from varspeed.protocol.process import Process
from varspeed.protocol.ring import build_ring


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Isolate every test from the developer's environment."""
    for name in (
        "VARSPEED_LOG_LEVEL",
        "VARSPEED_MAX_ROUNDS",
        "VARSPEED_BARRIER_TIMEOUT",
        "VARSPEED_RUN_TIMEOUT",
        "VARSPEED_HISTORY_LIMIT",
        "VARSPEED_ROSTER_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, barrier_timeout=10.0, run_timeout=60.0)


def _simulate(ids: list[int], max_rounds: int = 10_000) -> tuple[list[Process], int]:
    """
    Drive a ring round by round on the calling thread.

    Mirrors the coordinator's transition step without threads so the
    decision logic can be checked in isolation.

    Returns:
        The processes and the number of completed rounds
    """
    processes = build_ring(build_roster(ids))
    for round_number in range(max_rounds):
        for process in processes:
            process.step(round_number)
        for process in processes:
            process.commit()
        if any(p.is_leader for p in processes):
            for process in processes:
                process.notify_leader_found()
                process.confirm()
            return processes, round_number + 1
    raise AssertionError(f"No leader within {max_rounds} rounds for {ids}")


@pytest.fixture
def simulate():
    return _simulate
