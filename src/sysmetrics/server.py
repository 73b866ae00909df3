from __future__ import annotations
import asyncio, socket
from typing import Callable, Optional
import uvicorn
from fastapi import FastAPI, Response
from structlog import get_logger
from .errors import RegistryClosed, ServerStartFailure
from .obs.exposition import CONTENT_TYPE, render
from .obs.registry import MetricRegistry

log = get_logger()


def create_app(registry: MetricRegistry, *, state: Optional[Callable[[], str]] = None) -> FastAPI:
    app = FastAPI(title="sysmetrics", version="0.1.0")

    # sync handlers run in the threadpool, next to the sampler threads
    def metrics() -> Response:
        try:
            text = render(registry.snapshot())
        except RegistryClosed:
            return Response(content="registry closed\n", status_code=503, media_type="text/plain")
        return Response(content=text, media_type=CONTENT_TYPE)

    app.add_api_route("/metrics", metrics, methods=["GET"])
    app.add_api_route("/", metrics, methods=["GET"], include_in_schema=False)

    @app.get("/health")
    def health():
        return {"ok": not registry.closed, "state": state() if state else "unknown", "metrics": len(registry)}

    return app


class ExpositionServer:
    """
    uvicorn serving the scrape app as one asyncio task.
    The socket is bound before the task starts so bind errors surface here.
    """

    def __init__(self, app: FastAPI, *, host: str = "0.0.0.0", port: int = 8000) -> None:
        self.app = app
        self.host = host
        self.port = port
        self._sock: Optional[socket.socket] = None
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise ServerStartFailure(f"cannot bind {self.host}:{self.port}: {e}") from e
        return sock

    async def start(self) -> None:
        self._sock = self._bind()
        self.port = self._sock.getsockname()[1]
        config = uvicorn.Config(self.app, log_config=None, access_log=False, lifespan="off")
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[self._sock]), name="exposition_server")
        while not self._server.started:
            if self._task.done():
                err = self._task.exception() if not self._task.cancelled() else None
                self._close_socket()
                raise ServerStartFailure(f"server exited during startup: {err!r}")
            await asyncio.sleep(0.01)
        log.info("server_started", host=self.host, port=self.port)

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    async def stop(self) -> None:
        if self._server is None or self._task is None:
            return
        self._server.should_exit = True
        try:
            await asyncio.wait_for(self._task, timeout=5)
        except asyncio.TimeoutError:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._close_socket()
            self._server = None
            self._task = None
        log.info("server_stopped")

    def _close_socket(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None
