"""Liveness and dependency health of the wizard service."""

import asyncio
import logging
from typing import Any

import httpx
import redis
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from backend.extranet.config import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


async def check_backend(settings: Settings, client: httpx.AsyncClient | None = None) -> tuple[bool, str]:
    """Check the catalog service base URL.

    Only a 5xx or a transport failure counts as down; the request carries no
    session, so 401/404 still prove the service is up.
    """
    owned = client is None
    http = client or httpx.AsyncClient(timeout=settings.backend_timeout_ms / 1000)
    try:
        response = await http.get(settings.backend_base_url)
    except httpx.HTTPError as e:
        return (False, f"error: {type(e).__name__}")
    finally:
        if owned:
            await http.aclose()

    if response.status_code >= 500:
        return (False, f"error: status {response.status_code}")
    return (True, "ok")


async def check_redis(settings: Settings) -> tuple[bool, str]:
    """Ping the step cache's Redis; skipped when the cache is in-memory."""
    if not settings.redis_url:
        return (True, "not_configured")

    client = redis.from_url(settings.redis_url, decode_responses=True)  # type: ignore[no-untyped-call]
    try:
        await asyncio.to_thread(client.ping)
    except redis.RedisError as e:
        return (False, f"error: {type(e).__name__}")
    return (True, "ok")


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness check; answers as long as the process serves requests."""
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz() -> dict[str, Any] | JSONResponse:
    """Readiness check.

    Returns:
        Component status; 503 when the catalog service or Redis is down
    """
    settings = get_settings()
    (backend_ok, backend_status), (redis_ok, redis_status) = await asyncio.gather(
        check_backend(settings), check_redis(settings)
    )

    body: dict[str, Any] = {
        "status": "ok" if backend_ok and redis_ok else "degraded",
        "components": {"backend": backend_status, "redis": redis_status},
    }
    if body["status"] != "ok":
        logger.warning(f"Readiness degraded: {body['components']}")
        return JSONResponse(content=body, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return body
