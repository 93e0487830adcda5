"""Observability helpers: correlation IDs, Prometheus metrics, and audit
events that never carry pixel data.

Log handlers and formatting are configured by `AppConfig.setup_logging`.
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

REGISTRY = CollectorRegistry()
HTTP_REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "http_status"],
    registry=REGISTRY,
)
HTTP_REQUEST_LATENCY = Histogram(
    "http_request_latency_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    registry=REGISTRY,
)
STAGE_LATENCY = Histogram(
    "masking_stage_latency_seconds",
    "Latency of a masking pipeline stage (seconds)",
    ["stage"],
    registry=REGISTRY,
)
STAGE_ERRORS = Counter(
    "masking_errors_total",
    "Masking pipeline errors",
    ["stage", "error_type"],
    registry=REGISTRY,
)
MASKED_REGIONS = Counter(
    "masked_regions_total",
    "Regions masked, by category and style",
    ["category", "style"],
    registry=REGISTRY,
)


AUDIT_LOGGER = logging.getLogger("pii_masker.audit")


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        cid = request.headers.get("x-correlation-id") or uuid.uuid4().hex
        request.state.correlation_id = cid
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.time()
        endpoint = request.url.path
        method = request.method
        status = "500"
        try:
            resp = await call_next(request)
            status = str(resp.status_code)
        finally:
            elapsed = time.time() - start
            HTTP_REQUEST_COUNT.labels(method=method, endpoint=endpoint, http_status=status).inc()
            HTTP_REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(elapsed)
        return resp


def metrics_response():
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


# keys that could carry image content; their values are never written
_REDACT_KEYS = {"image", "image_bytes", "pixels", "raw", "data", "masked_image"}


def _redact(details: Dict[str, Any]) -> Dict[str, Any]:
    out = {}
    for k, v in details.items():
        if k.lower() in _REDACT_KEYS or isinstance(v, (bytes, bytearray)):
            out[k] = "<REDACTED>"
        else:
            try:
                json.dumps(v)
                out[k] = v
            except (TypeError, ValueError):
                out[k] = str(v)
    return out


def audit_event(action: str, principal: Dict[str, Any], details: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Log one masking action to the audit logger and return the record.

    Only the caller's id and role are kept from `principal`; `details` is
    passed through `_redact` so encoded images never reach the audit file.
    """
    record = {
        "ts": int(time.time()),
        "action": action,
        "correlation_id": principal.get("correlation_id"),
        "principal": {k: principal[k] for k in ("id", "role") if k in principal},
        "details": _redact(details or {}),
    }
    AUDIT_LOGGER.info(json.dumps(record))
    return record

