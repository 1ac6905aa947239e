"""FastAPI surface for voice sessions.

Clients forward speech-to-text events for a session and receive finished
inventory commands plus live partial state. Persistence of the commands is
left to the caller.
"""

import logging
import os
from datetime import UTC, datetime

import redis
from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from voicestock import __version__
from voicestock.commands.interpreter import CommandInterpreter
from voicestock.commands.pipeline import SessionRegistry, TextFragment
from voicestock.commands.session_context import (
    ContextSource,
    RedisSessionContext,
    SessionContext,
)
from voicestock.config import get_interpreter_config
from voicestock.logging_utils import clear_session_id, log_warning
from voicestock.metrics import get_metrics_collector, is_metrics_enabled
from voicestock.models import (
    DependencyStatus,
    FragmentResponse,
    StatusResponse,
    TranscriptEvent,
)
from voicestock.nlu import get_nlu_provider

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
app = FastAPI(
    title="voicestock API",
    version=__version__,
    description="Incremental interpretation of spoken inventory commands",
)

# Session registry (initialized lazily)
_session_registry: SessionRegistry | None = None
_redis_client: redis.Redis | None = None
_redis_checked = False


def _connect_redis() -> redis.Redis | None:
    """Connect to the session context store named by REDIS_URL.

    Returns None when REDIS_ENABLED is "false" or the server cannot be
    reached; sessions then keep their context in memory.
    """
    if os.environ.get("REDIS_ENABLED", "true").lower() == "false":
        logger.info("Redis disabled, keeping session context in memory")
        return None

    url = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
    try:
        client = redis.Redis.from_url(url, socket_connect_timeout=2, socket_timeout=2)
        client.ping()
    except (redis.RedisError, ValueError) as e:
        log_warning(logger, "Redis unavailable, keeping session context in memory", error=e)
        return None

    config = get_interpreter_config()
    logger.info(
        "Session context stored in Redis (prefix=%s, ttl=%ss)",
        config.context_key_prefix,
        config.context_ttl_seconds,
    )
    return client


def get_redis() -> redis.Redis | None:
    """Get the Redis client once; None means in-memory context storage."""
    global _redis_client, _redis_checked
    if not _redis_checked:
        _redis_client = _connect_redis()
        _redis_checked = True
    return _redis_client


def _make_context(session_id: str) -> ContextSource:
    config = get_interpreter_config()
    client = get_redis()
    if client is None:
        return SessionContext(config.max_history_entries, config.max_recent_commands)
    return RedisSessionContext(
        session_id,
        redis_client=client,
        default_ttl_seconds=config.context_ttl_seconds,
        key_prefix=config.context_key_prefix,
        max_history_entries=config.max_history_entries,
        max_recent_commands=config.max_recent_commands,
    )


def get_session_registry() -> SessionRegistry:
    """Get or initialize the session registry with the configured provider."""
    global _session_registry
    if _session_registry is None:
        config = get_interpreter_config()
        interpreter = CommandInterpreter(
            get_nlu_provider(), timeout_seconds=config.interpreter_timeout_seconds
        )
        _session_registry = SessionRegistry(
            interpreter, config=config, context_factory=_make_context
        )
    return _session_registry


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/v1/status", response_model=StatusResponse)
def get_status():
    """Get service status endpoint.

    Reports the active NLU provider, session count and context storage
    readiness. Does not expose sensitive configuration values.
    """
    registry = get_session_registry()
    dependencies = []

    client = get_redis()
    if client is None:
        dependencies.append(
            DependencyStatus(
                name="context_storage",
                status="ok",
                message="Using in-memory session context",
            )
        )
    else:
        try:
            client.ping()
            dependencies.append(
                DependencyStatus(name="context_storage", status="ok", message="Redis healthy")
            )
        except redis.RedisError as e:
            log_warning(logger, "Redis health check failed", error=e)
            dependencies.append(
                DependencyStatus(
                    name="context_storage",
                    status="unavailable",
                    message="Redis connection failed",
                )
            )

    overall_status = "ok"
    if any(dep.status != "ok" for dep in dependencies):
        overall_status = "degraded"

    return StatusResponse(
        status=overall_status,
        version=app.version,
        timestamp=datetime.now(UTC),
        nlu_provider=type(registry.interpreter.provider).__name__,
        active_sessions=len(registry),
        dependencies=dependencies,
    )


@app.post("/v1/sessions/{session_id}/fragments", response_model=FragmentResponse)
async def submit_fragment(session_id: str, event: TranscriptEvent) -> FragmentResponse:
    """Interpret one transcript event for a session.

    Interim events are accepted but never interpreted.
    """
    pipeline = get_session_registry().get(session_id)
    try:
        result = await pipeline.process_fragment(
            TextFragment(text=event.text, is_final=event.is_final, confidence=event.confidence)
        )
    finally:
        clear_session_id()
    return FragmentResponse.from_result(session_id, result)


@app.delete("/v1/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def end_session(session_id: str) -> Response:
    """End a session, discarding its pending command and context."""
    registry = get_session_registry()
    if session_id not in registry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": f"Unknown session: {session_id}"},
        )

    context = registry.get(session_id).context
    if isinstance(context, SessionContext | RedisSessionContext):
        context.clear()
    registry.drop(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.websocket("/v1/sessions/{session_id}/stream")
async def stream_session(websocket: WebSocket, session_id: str) -> None:
    """Stream transcript events in and command results out.

    Only final events produce a response. The session's pending command is
    dropped when the connection closes.
    """
    await websocket.accept()
    registry = get_session_registry()
    pipeline = registry.get(session_id)
    logger.info("Voice stream opened for session %s", session_id[:8])

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                event = TranscriptEvent.model_validate_json(raw)
            except ValidationError as e:
                await websocket.send_json(
                    {"error": "invalid_event", "message": str(e.errors()[0]["msg"])}
                )
                continue

            result = await pipeline.process_fragment(
                TextFragment(text=event.text, is_final=event.is_final, confidence=event.confidence)
            )
            if event.is_final:
                response = FragmentResponse.from_result(session_id, result)
                await websocket.send_json(response.model_dump(mode="json"))
    except WebSocketDisconnect:
        logger.info("Voice stream closed for session %s", session_id[:8])
    finally:
        registry.drop(session_id)
        clear_session_id()


@app.get("/v1/metrics")
def get_metrics():
    """Return pipeline metrics when enabled via VOICESTOCK_ENABLE_METRICS."""
    if not is_metrics_enabled():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "message": "Metrics are disabled"},
        )
    return get_metrics_collector().get_snapshot()


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPExceptions and return Error schema."""
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.detail,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "http_error",
            "message": str(exc.detail),
        },
    )
