"""HTTP and WebSocket transport for live observers and run history."""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future
from typing import Awaitable, Callable

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from gridlife.broadcast import BroadcastRegistry
from gridlife.db.run_store import AgentDetailRecord, RunInfo, RunNotFoundError, RunStore
from gridlife.db.snapshot_codec import encode_world, iter_frames
from gridlife.sim.contracts import WorldState

logger = logging.getLogger(__name__)


class LiveSender:
    """Hands broadcast payloads from the loop thread to one websocket.

    A frame is skipped while the previous send is still in flight, and a
    failed send unsubscribes the sender.
    """

    def __init__(
        self,
        send_bytes: Callable[[bytes], Awaitable[None]],
        loop: asyncio.AbstractEventLoop,
        registry: BroadcastRegistry,
    ) -> None:
        self._send_bytes = send_bytes
        self._loop = loop
        self._registry = registry
        self._in_flight: Future[None] | None = None
        self.skipped = 0

    def __call__(self, payload: bytes) -> None:
        if self._in_flight is not None and not self._in_flight.done():
            self.skipped += 1
            return
        self._in_flight = asyncio.run_coroutine_threadsafe(
            self._send_bytes(payload), self._loop
        )
        self._in_flight.add_done_callback(self._check)

    def _check(self, future: Future[None]) -> None:
        if future.cancelled() or future.exception() is not None:
            logger.debug("Live send failed, dropping observer")
            self._registry.remove(self)


def create_app(store: RunStore, registry: BroadcastRegistry | None = None) -> FastAPI:
    app = FastAPI(title="gridlife", version="0.1.0")
    registry = registry if registry is not None else BroadcastRegistry()
    app.state.store = store
    app.state.registry = registry

    @app.get("/runs", response_model=list[RunInfo])
    def list_runs() -> list[RunInfo]:
        return store.list_runs()

    @app.get("/runs/{run_id}/states", response_model=list[WorldState])
    def run_states(run_id: str) -> list[WorldState]:
        try:
            return store.get_world_states(run_id)
        except RunNotFoundError as exc:
            raise HTTPException(status_code=404, detail=f"Unknown run {exc}") from exc

    @app.get(
        "/runs/{run_id}/agents/{agent_id}",
        response_model=list[AgentDetailRecord],
    )
    def agent_history(run_id: str, agent_id: str) -> list[AgentDetailRecord]:
        try:
            history = store.get_agent_history(run_id, agent_id)
        except RunNotFoundError as exc:
            raise HTTPException(status_code=404, detail=f"Unknown run {exc}") from exc
        if not history:
            raise HTTPException(status_code=404, detail=f"Unknown agent {agent_id}")
        return history

    @app.get("/history")
    def history(run_id: str | None = None) -> StreamingResponse:
        if run_id is None:
            current = store.get_current_run()
            if current is None:
                raise HTTPException(status_code=404, detail="No run in progress")
            run_id = current.id
        try:
            states = store.get_world_states(run_id)
        except RunNotFoundError as exc:
            raise HTTPException(status_code=404, detail=f"Unknown run {exc}") from exc
        frames = iter_frames(encode_world(state) for state in states)
        return StreamingResponse(frames, media_type="application/octet-stream")

    @app.websocket("/ws")
    async def live_feed(websocket: WebSocket) -> None:
        await websocket.accept()
        send = LiveSender(websocket.send_bytes, asyncio.get_running_loop(), registry)
        registry.add(send)
        try:
            latest = registry.latest
            if latest is not None:
                await websocket.send_bytes(latest)
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.debug("Observer disconnected")
        finally:
            registry.remove(send)

    return app
