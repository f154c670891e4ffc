"""Election endpoints."""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sse_starlette.sse import EventSourceResponse

from varspeed.config import get_settings
from varspeed.lib.exceptions import VariableSpeedsError
from varspeed.lib.models import (
    ElectionListResponse,
    ElectionRequest,
    ElectionResult,
    ElectionStatus,
    RoundReport,
)
from varspeed.lib.roster import build_roster
from varspeed.lib.store import ElectionStore, get_election_store
from varspeed.lib.streaming import EventBuilder, format_sse, is_notable
from varspeed.protocol.engine import ElectionEngine, create_engine

HEARTBEAT_INTERVAL = 10  # seconds

router = APIRouter()
logger = logging.getLogger(__name__)


def _prepare(request: ElectionRequest) -> ElectionEngine:
    """Validate input and build an engine. Raises before anything runs."""
    roster = build_roster(request.ids, size=request.size)
    engine = create_engine(roster, get_settings())
    engine.validate()
    return engine


@router.post("/elections", response_model=ElectionResult)
async def create_election(
    request: ElectionRequest,
    store: ElectionStore = Depends(get_election_store),
) -> ElectionResult:
    """
    Run an election to completion.

    The ring runs on worker threads; the response carries the leader and
    every process outcome.
    """
    engine = _prepare(request)
    try:
        result = await run_in_threadpool(engine.run)
    except VariableSpeedsError:
        if engine.result.status is not ElectionStatus.PENDING:
            await store.save(engine.result)
        raise

    await store.save(result)
    return result


@router.get("/elections", response_model=ElectionListResponse)
async def list_elections(
    store: ElectionStore = Depends(get_election_store),
) -> ElectionListResponse:
    """List stored election ids, oldest first."""
    return ElectionListResponse(elections=await store.list_ids())


@router.get("/elections/{election_id}", response_model=ElectionResult)
async def get_election(
    election_id: str,
    store: ElectionStore = Depends(get_election_store),
) -> ElectionResult:
    """Get a stored election result."""
    return await store.get(election_id)


@router.post("/elections/stream")
async def stream_election(
    body: ElectionRequest,
    request: Request,
    store: ElectionStore = Depends(get_election_store),
) -> EventSourceResponse:
    """
    Run an election and stream its progress via SSE.

    Only rounds in which a token moved, or the leader was found, are sent.
    Disconnecting cancels the run.
    """
    engine = _prepare(body)
    builder = EventBuilder(engine.election_id)

    async def event_generator():
        """Generate SSE events for the run with heartbeat keep-alive."""
        loop = asyncio.get_running_loop()
        event_queue: asyncio.Queue = asyncio.Queue()

        def on_round(report: RoundReport) -> None:
            # Called on a process thread inside the barrier action
            if is_notable(report):
                loop.call_soon_threadsafe(event_queue.put_nowait, ("round", report))

        engine.add_listener(on_round)

        async def election_task():
            """Run the election and queue its outcome."""
            try:
                result = await run_in_threadpool(engine.run)
                await event_queue.put(("done", result))
            except VariableSpeedsError as e:
                await event_queue.put(("error", e))

        yield format_sse(builder.election_start(engine.roster, engine.round_bound))
        task = asyncio.create_task(election_task())

        try:
            while True:
                if await request.is_disconnected():
                    logger.info(f"Client disconnected from election {engine.election_id}")
                    break

                try:
                    msg_type, payload = await asyncio.wait_for(
                        event_queue.get(),
                        timeout=HEARTBEAT_INTERVAL,
                    )
                except asyncio.TimeoutError:
                    yield format_sse(builder.heartbeat())
                    continue

                if msg_type == "round":
                    yield format_sse(builder.round_end(payload))
                    if payload.leader_found:
                        yield format_sse(
                            builder.leader_elected(
                                engine.coordinator.leader_id, payload.round
                            )
                        )

                elif msg_type == "done":
                    await store.save(payload)
                    yield format_sse(builder.election_end(payload))
                    break

                elif msg_type == "error":
                    await store.save(engine.result)
                    yield format_sse(
                        builder.election_error(payload.message, type(payload).__name__)
                    )
                    break

        finally:
            if not task.done():
                engine.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    return EventSourceResponse(event_generator())
