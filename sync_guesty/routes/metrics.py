"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP guesty_polls_total Total number of upstream polling operations
        # TYPE guesty_polls_total counter
        guesty_polls_total{entity_type="availability",listing_id="abc",status="success"} 12.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Return all registered metrics in Prometheus text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
