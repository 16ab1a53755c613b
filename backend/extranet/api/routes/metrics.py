"""Prometheus metrics endpoint."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint.

    Exposes all registered Prometheus metrics including:
    - wizard_commit_latency_ms{step, outcome}
    - wizard_commit_errors_total{step, reason}
    - wizard_validation_failures_total{step, code}
    - media_uploads_total{outcome}
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
