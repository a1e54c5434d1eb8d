# routes/metrics.py
from fastapi import APIRouter
from fastapi.responses import Response

from services.metrics import render_prometheus

router = APIRouter(tags=["metrics"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4"


@router.get("/metrics")
def metrics():
    # Reconcile and dispatch counters cover only passes run inside this process
    return Response(
        content=render_prometheus(),
        media_type=PROMETHEUS_CONTENT_TYPE,
        headers={"Cache-Control": "no-store"},
    )
