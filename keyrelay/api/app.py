"""
FastAPI application and endpoints for keyrelay
"""

import json
import traceback
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from ..core.errors import InvalidPayload
from ..core.key_pool import mask_key
from ..models.enums import LogOrder
from ..models.schemas import (
    AddKeyRequest, CommandResponse, KeySnapshot, LogsResponse, PoolStatus,
    QueueStats, StatusResponse
)
from ..utils.logging import setup_logging
from .lifespan import (
    lifespan, get_config, get_rotation, get_admission_queue, get_orchestrator,
    get_activity_log, get_uptime_minutes
)
from .middleware import AdminAccessMiddleware

logger = setup_logging()

MAX_LOG_SLICE = 500


async def _read_payload(request: Request) -> dict:
    """Parse the inbound body as a JSON object; an empty body becomes {}"""
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise InvalidPayload(f"Request body is not valid JSON: {e}")
    if not isinstance(payload, dict):
        raise InvalidPayload("Request body must be a JSON object")
    return payload


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="KeyRelay",
        description="OpenAI-compatible reverse proxy with upstream API key rotation",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        AdminAccessMiddleware,
        protected_paths=["/admin"],
        config_provider=get_config
    )

    # =============================================================================
    # PROXY ENDPOINTS
    # =============================================================================

    async def proxy_chat_completion(request: Request) -> Response:
        try:
            payload = await _read_payload(request)
        except InvalidPayload as e:
            logger.warning("Rejected request body", error=str(e))
            return JSONResponse(status_code=400,
                                content={"error": "Invalid request body", "detail": str(e)})

        try:
            orchestrator = get_orchestrator()
            result = await get_admission_queue().submit(lambda: orchestrator.forward(payload))
            return Response(content=result.body, status_code=result.status,
                            media_type=result.content_type)
        except Exception as e:
            logger.error("Proxy error", error=str(e), traceback=traceback.format_exc())
            return JSONResponse(status_code=500,
                                content={"error": "Proxy error", "detail": str(e)})

    app.add_api_route("/chat/completions", proxy_chat_completion, methods=["POST"])
    app.add_api_route("/v1/chat/completions", proxy_chat_completion, methods=["POST"])

    @app.get("/health")
    async def health_check():
        """System health check"""
        rotation = get_rotation()
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": "1.0.0",
            "keys": len(rotation.pool) if rotation else 0
        }

    # =============================================================================
    # STATUS AND COMMAND ENDPOINTS
    # =============================================================================

    def pool_status() -> PoolStatus:
        return PoolStatus(**get_rotation().status())

    @app.get("/admin/status", response_model=StatusResponse)
    async def get_status():
        """Pool, queue and log summary"""
        return StatusResponse(
            uptime_minutes=get_uptime_minutes(),
            pool=pool_status(),
            queue=QueueStats(**get_admission_queue().stats()),
            log_entries=len(get_activity_log()),
            log_status_counts=get_activity_log().counts_by_status()
        )

    @app.get("/admin/keys")
    async def list_keys():
        """Masked per-key status"""
        rotation = get_rotation()
        rows = rotation.pool.snapshot(active_index=rotation.cursor)
        return {"keys": [KeySnapshot(**row) for row in rows]}

    @app.post("/admin/keys", response_model=CommandResponse)
    async def add_key(request: AddKeyRequest):
        """Add a key at runtime; duplicates are ignored"""
        added = get_rotation().add(request.key)
        message = "Key added" if added else "Key already present"
        return CommandResponse(success=added, message=f"{message}: {mask_key(request.key.strip())}",
                               pool=pool_status())

    @app.delete("/admin/keys/{position}", response_model=CommandResponse)
    async def remove_key(position: int):
        """Remove the key at a 1-based position"""
        try:
            removed = get_rotation().remove(position - 1)
        except IndexError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return CommandResponse(success=True, message=f"Key removed: {mask_key(removed.value)}",
                               pool=pool_status())

    @app.post("/admin/rotate", response_model=CommandResponse)
    async def force_rotate():
        """Rotate to the next eligible key immediately"""
        rotation = get_rotation()
        rotation.advance(manual=True)
        return CommandResponse(success=True, message="Rotated", pool=pool_status())

    @app.post("/admin/reset", response_model=CommandResponse)
    async def reset_flags():
        """Clear every dead flag and cooldown"""
        cleared = get_rotation().clear_transient_flags()
        return CommandResponse(
            success=True,
            message=f"Revived {cleared['revived']} keys, cleared {cleared['cooldowns_cleared']} cooldowns",
            pool=pool_status()
        )

    @app.get("/admin/logs", response_model=LogsResponse)
    async def get_logs(limit: int = Query(20, ge=0, le=MAX_LOG_SLICE),
                       order: LogOrder = LogOrder.NEWEST_FIRST):
        """Recent forwarding history"""
        activity_log = get_activity_log()
        entries = activity_log.recent(limit, newest_first=order == LogOrder.NEWEST_FIRST)
        return LogsResponse(total=len(activity_log), logs=[e.to_dict() for e in entries])

    @app.delete("/admin/logs", response_model=CommandResponse)
    async def clear_logs():
        """Empty the activity log"""
        removed = get_activity_log().clear()
        return CommandResponse(success=True, message=f"Cleared {removed} log entries")

    return app
