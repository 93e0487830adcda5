"""Image masking pipeline orchestrator.

MaskingPipeline composes decoding, region detection, masking and encoding
into one synchronous call. It holds no per-request state: every call owns
its own PixelBuffer, so a single pipeline can serve concurrent requests.
Retries, delays and simulated failures belong to the caller.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

from pii_masker.core.buffer import MaskingStyle, MaskResult
from pii_masker.core.codec import Codec, ImageCodec
from pii_masker.core.config import AppConfig, SETTINGS
from pii_masker.core.errors import ProcessingError
from pii_masker.detection.region_synthesizer import RegionDetector, RegionSynthesizer
from pii_masker.masking.engine import MaskingEngine
from pii_masker.utils.observability import STAGE_ERRORS, STAGE_LATENCY, audit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class StageResult:
    name: str
    duration_s: float
    error: Optional[str] = None


class MaskingPipeline:
    def __init__(
        self,
        config: Optional[AppConfig] = None,
        codec: Optional[Codec] = None,
        detector: Optional[RegionDetector] = None,
        engine: Optional[MaskingEngine] = None,
    ):
        self.config = config or SETTINGS
        # file handlers for application and audit logs
        try:
            self.config.setup_logging()
        except OSError:
            logger.exception("Failed to set up log files from config")
        self.codec = codec or ImageCodec.from_config(self.config.processing)
        self.detector = detector or RegionSynthesizer()
        self.engine = engine or MaskingEngine.from_config(self.config.mask)
        self.metrics: Dict[str, Any] = {"processed": 0, "errors": 0}

    def _rng(self) -> random.Random:
        seed = self.config.mask.seed
        return random.Random(seed) if seed is not None else random.Random()

    def _run_stage(self, name: str, stages: List[StageResult], fn: Callable[[], T]) -> T:
        start = time.time()
        try:
            result = fn()
        except ProcessingError as exc:
            elapsed = time.time() - start
            stages.append(StageResult(name=name, duration_s=elapsed, error=str(exc)))
            STAGE_ERRORS.labels(stage=name, error_type=type(exc).__name__).inc()
            STAGE_LATENCY.labels(stage=name).observe(elapsed)
            raise
        elapsed = time.time() - start
        stages.append(StageResult(name=name, duration_s=elapsed))
        STAGE_LATENCY.labels(stage=name).observe(elapsed)
        return result

    def process(
        self,
        image_bytes: bytes,
        style: Union[MaskingStyle, str, None] = None,
        rng: Optional[random.Random] = None,
    ) -> MaskResult:
        """Decode, detect, mask and encode one image.

        Raises DecodeError, EncodeError or InvalidRegionError. Nothing is
        retried; the caller receives the first failure.
        """
        if style is None:
            style = self.config.mask.default_style
        style = MaskingStyle.parse(style)
        if rng is None:
            rng = self._rng()
        stages: List[StageResult] = []

        try:
            buffer = self._run_stage("decode", stages, lambda: self.codec.decode(image_bytes))
            regions, summary = self._run_stage(
                "detect", stages, lambda: self.detector.detect(buffer.width, buffer.height, rng)
            )
            self._run_stage("mask", stages, lambda: self.engine.mask_all(buffer, regions, style))
            encoded = self._run_stage("encode", stages, lambda: self.codec.encode(buffer))
        except ProcessingError as exc:
            self.metrics["errors"] += 1
            logger.warning("Masking failed at stage %s: %s", stages[-1].name if stages else "?", exc)
            audit_event(
                "mask.process",
                {"id": "pipeline", "role": "service"},
                {"status": "error", "error_type": type(exc).__name__, "style": style.value},
            )
            raise

        self.metrics["processed"] += 1
        result = MaskResult(
            buffer=buffer,
            summary=summary,
            style=style,
            regions=list(regions),
            image_bytes=encoded,
            image_format=getattr(self.codec, "output_format", "PNG"),
        )
        logger.info(
            "Masked %dx%d image with %s: %s",
            buffer.width,
            buffer.height,
            style.value,
            summary.to_dict(),
        )
        audit_event(
            "mask.process",
            {"id": "pipeline", "role": "service"},
            {
                "status": "ok",
                "style": style.value,
                "width": buffer.width,
                "height": buffer.height,
                "counts": summary.to_dict(),
                "stages": {s.name: round(s.duration_s, 4) for s in stages},
            },
        )
        return result

    def process_file(
        self,
        input_path: Union[str, Path],
        style: Union[MaskingStyle, str, None] = None,
        output_path: Optional[Union[str, Path]] = None,
        rng: Optional[random.Random] = None,
    ) -> MaskResult:
        data = Path(input_path).read_bytes()
        result = self.process(data, style=style, rng=rng)
        if output_path is not None:
            out = Path(output_path)
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(result.image_bytes)
            logger.info("Wrote masked image to %s", out)
        return result


__all__ = ["MaskingPipeline", "StageResult"]
