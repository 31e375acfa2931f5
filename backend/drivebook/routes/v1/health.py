# backend/drivebook/routes/v1/health.py
"""
Health check and metrics endpoints for monitoring and load balancer health checks.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Response

from ...core.config import settings
from ...core.constants import API_VERSION, BRAND_NAME
from ...monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict:
    return {
        "status": "healthy",
        "service": f"{BRAND_NAME.lower()}-api",
        "version": API_VERSION,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
