import base64
import datetime
import logging
import time
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, File, Form, Request, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pii_masker.api.fault_injection import FaultInjector, SimulatedServiceError
from pii_masker.core.buffer import MaskingStyle
from pii_masker.core.config import SETTINGS, AppConfig
from pii_masker.core.errors import DecodeError, EncodeError, InvalidRegionError
from pii_masker.core.pipeline import MaskingPipeline
from pii_masker.utils.observability import PrometheusMiddleware, RequestIDMiddleware, audit_event, metrics_response

logger = logging.getLogger(__name__)

PROCESS_FAILED = "Failed to process image. Please try again."
UPLOAD_FAILED = "Failed to upload image. Please check your file and try again."

_EXTENSIONS = {"PNG": "png", "JPEG": "jpg", "GIF": "gif", "WEBP": "webp"}


def _failure(status_code: int, message: str, **extra: Any) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    body.update(extra)
    return JSONResponse(body, status_code=status_code)


def create_app(
    config: Optional[AppConfig] = None,
    pipeline: Optional[MaskingPipeline] = None,
    injector: Optional[FaultInjector] = None,
) -> FastAPI:
    config = config or SETTINGS
    pipeline = pipeline or MaskingPipeline(config)
    injector = injector or FaultInjector(config.simulation)

    app = FastAPI(title="PII Image Masker")
    app.state.pipeline = pipeline
    app.state.injector = injector

    # Observability middleware
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/api/mask")
    async def mask_image(request: Request, file: UploadFile = File(...), style: str = Form("blackbar")) -> JSONResponse:
        correlation_id = getattr(request.state, "correlation_id", None)
        principal = {"id": "anonymous", "role": "anonymous", "correlation_id": correlation_id}

        try:
            masking_style = MaskingStyle.parse(style)
        except ValueError as exc:
            return _failure(400, str(exc))

        content_type = (file.content_type or "").lower()
        if not content_type.startswith("image/"):
            return _failure(400, "Please upload an image file.")

        limit = config.processing.max_upload_bytes
        try:
            # one byte past the limit is enough to reject
            body = await file.read(limit + 1)
        finally:
            await file.close()
        if len(body) > limit:
            return _failure(413, f"Image exceeds the {limit} byte upload limit.")

        try:
            await injector.before_request()
        except SimulatedServiceError as exc:
            audit_event("mask.request", principal, {"status": "simulated_failure"})
            return _failure(503, str(exc))

        try:
            result = await run_in_threadpool(pipeline.process, body, masking_style)
        except DecodeError as exc:
            logger.warning("Rejected upload %s: %s", file.filename, exc)
            audit_event("mask.request", principal, {"status": "error", "error_type": "DecodeError"})
            return _failure(422, UPLOAD_FAILED, error=str(exc))
        except (EncodeError, InvalidRegionError) as exc:
            logger.error("Masking failed for %s: %s", file.filename, exc)
            audit_event("mask.request", principal, {"status": "error", "error_type": type(exc).__name__})
            return _failure(500, PROCESS_FAILED, error=str(exc))

        mime = getattr(pipeline.codec, "output_mime_type", "image/png")
        encoded = base64.b64encode(result.image_bytes).decode("ascii")
        ext = _EXTENSIONS.get(result.image_format, "png")
        audit_event(
            "mask.request",
            principal,
            {"status": "ok", "style": masking_style.value, "counts": result.summary.to_dict()},
        )
        return JSONResponse(
            {
                "success": True,
                "maskedImage": f"data:{mime};base64,{encoded}",
                "detectedPII": result.summary.to_dict(),
                "totalDetected": result.summary.total,
                "message": "Image processed successfully",
                "style": masking_style.value,
                "filename": f"masked-image-{masking_style.value}-{int(time.time() * 1000)}.{ext}",
            }
        )

    @app.get("/api/health")
    async def health() -> Dict[str, str]:
        return {
            "status": "healthy",
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }

    @app.get("/metrics")
    async def metrics():
        data, ctype = metrics_response()
        return Response(content=data, media_type=ctype)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)
