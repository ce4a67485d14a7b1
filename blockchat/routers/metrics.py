"""/metrics endpoint that exposes Prometheus collectors in text format."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST
from prometheus_client import generate_latest

from blockchat.constants import METRICS_PATH

router = APIRouter(tags=["metrics"], include_in_schema=False)


@router.get(METRICS_PATH)
def metrics() -> Response:  # noqa: D401 – external signature
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
