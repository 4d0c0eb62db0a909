"""
ElserBench - Main Application Entry Point

FastAPI application for starting, stopping and watching benchmark runs, with
real-time WebSocket progress streaming.
"""

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Callable, Optional

import asyncio
import logging

import httpx
from fastapi import Body, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from elserbench import __version__
from elserbench.api.error_handling import classify_search_error, http_exception, not_found
from elserbench.config import settings
from elserbench.connectors.search_client import build_default_clients
from elserbench.core.comparator import Comparator
from elserbench.core.test_registry import TERMINAL_EVENTS, TestRegistry

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler(settings.LOG_FILE)
        if settings.LOG_FILE
        else logging.NullHandler(),
    ],
)

# Per-request httpx logging drowns out benchmark progress.
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def _default_comparator() -> Comparator:
    return Comparator(*build_default_clients())


def create_app(
    comparator_factory: Optional[Callable[[], Comparator]] = None,
) -> FastAPI:
    """Build the application. ``comparator_factory`` lets tests swap the targets."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("🚀 ElserBench starting up...")
        logger.info(
            f"🔧 Environment: {'Development' if settings.APP_DEBUG else 'Production'}"
        )
        comparator = (comparator_factory or _default_comparator)()
        app.state.comparator = comparator
        app.state.registry = TestRegistry(comparator)
        logger.info("🎯 Targets: %s vs %s", *comparator.targets)

        yield

        logger.info("🛑 ElserBench shutting down...")
        try:
            await app.state.registry.shutdown(timeout_seconds=5.0)
        except Exception as e:
            logger.warning("Registry shutdown encountered an error: %s", e)
        await comparator.aclose()

    app = FastAPI(
        title="ElserBench",
        description="Latency and throughput comparison of two ELSER deployments",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_routes(app)
    return app


def _registry(request_or_ws: Any) -> TestRegistry:
    return request_or_ws.app.state.registry


def _register_routes(app: FastAPI) -> None:
    @app.get("/health")
    async def health_check(request: Request):
        """
        Health check endpoint for monitoring and load balancers.

        Returns:
            dict: Service health status and configured targets
        """
        comparator: Comparator = request.app.state.comparator
        return {
            "status": "healthy",
            "service": "elserbench",
            "version": __version__,
            "environment": "development" if settings.APP_DEBUG else "production",
            "targets": list(comparator.targets),
        }

    @app.post("/api/test")
    async def start_test(request: Request, payload: dict[str, Any] = Body(...)):
        """Start a test described by a config payload carrying ``test_type``."""
        try:
            test = await _registry(request).start(payload)
        except ValidationError as e:
            raise RequestValidationError(e.errors(include_url=False))
        except Exception as e:
            raise http_exception("start test", e)
        return {"id": test.test_id, "type": test.test_type, "status": "started"}

    @app.post("/api/test/{test_id}/stop")
    async def stop_test(request: Request, test_id: str):
        try:
            await _registry(request).stop(test_id)
        except KeyError:
            raise not_found("Test", test_id)
        return {"success": True}

    @app.get("/api/test/{test_id}")
    async def test_status(request: Request, test_id: str):
        try:
            return await _registry(request).status(test_id)
        except KeyError:
            raise not_found("Test", test_id)

    @app.post("/api/test-connection")
    async def test_connection(request: Request):
        """Fetch cluster info from both targets."""
        comparator: Comparator = request.app.state.comparator
        checks: dict[str, Any] = {}
        for executor in (comparator.executor_a, comparator.executor_b):
            info = getattr(executor, "info", None)
            if info is None:
                checks[executor.target] = {"status": "unknown"}
                continue
            try:
                data = await info()
            except httpx.HTTPError as e:
                logger.warning("Connection check failed for %s: %s", executor.target, e)
                classified = classify_search_error(e)
                check: dict[str, Any] = {
                    "status": "error",
                    "error": str(e) or type(e).__name__,
                }
                if classified is not None:
                    check["code"] = classified.code
                    check["message"] = classified.message
                    if classified.hint:
                        check["hint"] = classified.hint
                checks[executor.target] = check
                continue
            checks[executor.target] = {
                "status": "ok",
                "cluster_name": data.get("cluster_name"),
                "version": (data.get("version") or {}).get("number"),
            }
        return {"success": all(c["status"] == "ok" for c in checks.values()), "targets": checks}

    @app.websocket("/ws/test/{test_id}")
    async def websocket_test_events(websocket: WebSocket, test_id: str):
        """
        WebSocket endpoint for real-time test event streaming.

        Args:
            websocket: WebSocket connection
            test_id: Test session identifier
        """
        await websocket.accept()
        logger.info(f"📡 WebSocket connected for test: {test_id}")
        registry = _registry(websocket)
        try:
            q = await registry.subscribe(test_id)
        except KeyError:
            await websocket.send_json(
                {"type": "error", "test_id": test_id, "message": "Test not found"}
            )
            await websocket.close()
            return

        try:
            await _stream_test_events(websocket, test_id, q)
        except WebSocketDisconnect:
            logger.info(f"📡 WebSocket disconnected for test: {test_id}")
        finally:
            await registry.unsubscribe(test_id, q)
            if websocket.client_state == WebSocketState.CONNECTED:
                await websocket.close()


async def _stream_test_events(
    websocket: WebSocket, test_id: str, q: asyncio.Queue
) -> None:
    await websocket.send_json(
        {
            "type": "connected",
            "test_id": test_id,
            "timestamp": datetime.now(UTC).isoformat(),
        }
    )
    while True:
        recv_task = asyncio.create_task(websocket.receive())
        event_task = asyncio.create_task(q.get())
        done, pending = await asyncio.wait(
            {recv_task, event_task}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()

        if recv_task in done:
            msg = recv_task.result()
            if msg.get("type") == "websocket.disconnect":
                break
        if event_task in done:
            payload = event_task.result()
            await websocket.send_json(payload)
            if payload.get("type") in TERMINAL_EVENTS:
                break


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "elserbench.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        reload=settings.APP_RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
    )
