"""HTTP/WebSocket surface for the dashboard.

- ``/ws``: live stream (``boot`` once, then ``tick`` per cycle)
- ``/api/health``: liveness plus history size
- ``/api/history``: current intraday snapshot
- ``/``: static dashboard assets when ``static_dir`` exists

All pipeline objects are built in ``create_app`` and kept on ``app.state``;
the lifespan only starts and stops them.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.staticfiles import StaticFiles

from config.settings import GlobalConfig, get_config
from dolarpulse import __version__
from dolarpulse.browser import BrowserManager
from dolarpulse.history import SampleHistory
from dolarpulse.logger import get_logger
from dolarpulse.publisher import Event, LivePublisher
from dolarpulse.scheduler import CycleScheduler

log = get_logger(__name__)


class WebSocketSink:
    """Adapts a FastAPI WebSocket to the publisher's sink protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send(self, event: Event) -> None:
        await self.websocket.send_json(event)

    async def close(self) -> None:
        await self.websocket.close()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start sampling on startup; tear everything down on shutdown."""
    scheduler: CycleScheduler = app.state.scheduler
    if app.state.start_scheduler:
        scheduler.start()

    yield

    await scheduler.stop()
    await app.state.publisher.close()
    await app.state.fetcher.close()
    log.info("Application shutdown complete")


async def health(request: Request) -> dict[str, Any]:
    history: SampleHistory = request.app.state.history
    scheduler: CycleScheduler = request.app.state.scheduler
    latest = history.latest
    return {
        "ok": True,
        "size": len(history),
        "cycles": scheduler.cycles_completed,
        "lastSampleAt": latest.to_wire()["timestamp"] if latest else None,
        "subscribers": request.app.state.publisher.subscriber_count,
    }


async def history_snapshot(request: Request) -> list[dict[str, Any]]:
    return [sample.to_wire() for sample in request.app.state.history.snapshot()]


async def stream(websocket: WebSocket) -> None:
    await websocket.accept()
    publisher: LivePublisher = websocket.app.state.publisher
    subscription = publisher.connect(WebSocketSink(websocket))

    try:
        # Clients never send anything meaningful; this just waits for disconnect.
        while True:
            await websocket.receive_text()
    except (WebSocketDisconnect, RuntimeError):
        pass
    finally:
        await publisher.disconnect(subscription)


def create_app(
    config: GlobalConfig | None = None,
    fetcher: BrowserManager | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """Build the application and its sampling pipeline.

    Args:
        config: Optional GlobalConfig. Uses singleton if not provided.
        fetcher: Page fetcher override (tests inject a fake).
        start_scheduler: Start sampling in the lifespan.

    Returns:
        Configured FastAPI instance.
    """
    config = config or get_config()

    history = SampleHistory(max_length=config.history_max_length)
    publisher = LivePublisher(history, queue_size=config.subscriber_queue_size)
    fetcher = fetcher or BrowserManager(config)
    scheduler = CycleScheduler(fetcher, history, publisher, config)

    app = FastAPI(title=config.app_name, version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.history = history
    app.state.publisher = publisher
    app.state.fetcher = fetcher
    app.state.scheduler = scheduler
    app.state.start_scheduler = start_scheduler

    app.get("/api/health")(health)
    app.get("/api/history")(history_snapshot)
    app.websocket("/ws")(stream)

    if config.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=config.static_dir, html=True), name="static")
        log.info("Serving dashboard assets", static_dir=str(config.static_dir))

    return app
