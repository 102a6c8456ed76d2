"""
aiohttp server for the procedure demo.

Serves the page, a websocket per page visit carrying UI events in and
rendered regions out, and a health endpoint.
"""

import asyncio
import threading
from typing import Callable, Optional

from aiohttp import WSMsgType, web
from pydantic import ValidationError as PydanticValidationError

from .. import __version__
from ..core.config import Config
from ..core.exceptions import ProcedureAppError, SessionNotFoundError
from ..core.logging_config import get_logger
from ..program import DemoProgram, Program, SessionManager, UIEvent
from .models import ErrorFrame, HealthStatus, RenderFrame
from .rendering import ViewRenderer

CONFIG_KEY = web.AppKey("config", Config)
SESSIONS_KEY = web.AppKey("sessions", SessionManager)
RENDERER_KEY = web.AppKey("renderer", ViewRenderer)

logger = get_logger("procedure_app.web")


async def index(request: web.Request) -> web.Response:
    sessions = request.app[SESSIONS_KEY]
    renderer = request.app[RENDERER_KEY]

    session = await sessions.start_session(
        {"remote": request.remote, "user_agent": request.headers.get("User-Agent", "")}
    )
    html = renderer.render_page(session.session_id, session.view)
    return web.Response(text=html, content_type="text/html")


async def health(request: web.Request) -> web.Response:
    status = HealthStatus(version=__version__, sessions=len(request.app[SESSIONS_KEY]))
    return web.json_response(status.model_dump())


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    sessions = request.app[SESSIONS_KEY]
    renderer = request.app[RENDERER_KEY]
    session_id = request.query.get("session")

    try:
        session = sessions.get_session(session_id)
    except SessionNotFoundError as e:
        raise web.HTTPNotFound(text=e.message)

    ws = web.WebSocketResponse(heartbeat=30.0)
    await ws.prepare(request)

    # Single writer: render frames and error frames share one queue.
    outbox: asyncio.Queue = asyncio.Queue()

    def on_render(view) -> None:
        frame = RenderFrame(regions=renderer.render_regions(view))
        outbox.put_nowait(frame.model_dump())

    session.add_listener(on_render)
    writer = asyncio.create_task(_pump(ws, outbox))
    error: Optional[Exception] = None

    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                _handle_frame(session, msg.data, outbox)
            elif msg.type == WSMsgType.ERROR:
                error = ws.exception()
                logger.warning(
                    f"Websocket closed with error: {error}",
                    extra={"metadata": {"session_id": session_id}},
                )
    finally:
        session.remove_listener(on_render)
        writer.cancel()
        await asyncio.gather(writer, return_exceptions=True)
        await sessions.end_session(session.session_id, error=error)

    return ws


def _handle_frame(session, data: str, outbox: asyncio.Queue) -> None:
    try:
        event = UIEvent.model_validate_json(data)
        session.handle_event(event)
    except PydanticValidationError as e:
        outbox.put_nowait(ErrorFrame(message=f"Malformed event: {e.errors()[0]['msg']}").model_dump())
    except ProcedureAppError as e:
        logger.info(
            f"Event rejected: {e.message}",
            extra={"metadata": {"session_id": session.session_id, **e.to_dict()}},
        )
        outbox.put_nowait(
            ErrorFrame(message=e.message, error_code=e.error_code or "EVENT_REJECTED").model_dump()
        )


async def _pump(ws: web.WebSocketResponse, outbox: asyncio.Queue) -> None:
    while True:
        frame = await outbox.get()
        if ws.closed:
            return
        await ws.send_json(frame)


async def _close_sessions(app: web.Application) -> None:
    await app[SESSIONS_KEY].close_all()


def create_app(
    config: Optional[Config] = None,
    program_factory: Optional[Callable[[], Program]] = None,
) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        config: Configuration; loaded from the environment when omitted
        program_factory: Builds a fresh program per page visit

    Returns:
        Configured application
    """
    config = config or Config.from_env()
    if program_factory is None:
        program_factory = lambda: DemoProgram(async_delay=config.async_port_delay)

    app = web.Application()
    app[CONFIG_KEY] = config
    app[SESSIONS_KEY] = SessionManager(program_factory, config)
    app[RENDERER_KEY] = ViewRenderer()

    app.router.add_get("/", index, allow_head=False)
    app.router.add_get("/ws", websocket_handler)
    app.router.add_get("/health", health)
    app.on_shutdown.append(_close_sessions)
    return app


async def start_site(app: web.Application, host: str, port: int) -> web.AppRunner:
    runner = web.AppRunner(app)
    await runner.setup()
    await web.TCPSite(runner, host, port).start()
    logger.info(
        f"Serving on http://{host}:{port}",
        extra={"metadata": {"host": host, "port": port}},
    )
    return runner


async def serve(config: Config, stop_event: Optional[asyncio.Event] = None) -> None:
    """Serve until ``stop_event`` is set, or forever."""
    runner = await start_site(create_app(config), config.host, config.port)
    try:
        await (stop_event or asyncio.Event()).wait()
    finally:
        await runner.cleanup()


class ServerThread(threading.Thread):
    """Runs the server on its own event loop in a background thread."""

    def __init__(self, config: Config, startup_timeout: float = 10.0):
        super().__init__(name="procedure-app-server", daemon=True)
        self.config = config
        self.startup_timeout = startup_timeout
        self.error: Optional[BaseException] = None
        self._ready = threading.Event()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[asyncio.Event] = None

    def run(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._serve())
        except BaseException as e:
            self.error = e
            self._ready.set()
        finally:
            self._loop.close()

    async def _serve(self) -> None:
        self._stop_event = asyncio.Event()
        runner = await start_site(create_app(self.config), self.config.host, self.config.port)
        self._ready.set()
        try:
            await self._stop_event.wait()
        finally:
            await runner.cleanup()

    def start_and_wait(self) -> "ServerThread":
        self.start()
        if not self._ready.wait(self.startup_timeout):
            raise ProcedureAppError(
                f"Server did not start within {self.startup_timeout}s",
                "SERVER_START_TIMEOUT",
            )
        if self.error is not None:
            raise ProcedureAppError(
                f"Server failed to start: {self.error}", "SERVER_START_FAILED"
            ) from self.error
        return self

    def stop(self, timeout: float = 10.0) -> None:
        if self._loop is not None and self._stop_event is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._stop_event.set)
        self.join(timeout)
