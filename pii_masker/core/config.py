"""Configuration management for the PII image masker.

This module centralizes configuration for masking, decoding/encoding,
logging, and the simulated-fault hook of the HTTP layer using
pydantic-settings so environment variables and a `.env` file can override
values. Nested values use a double underscore, e.g.
``PII_MASKER_MASK__BLUR_RADIUS=9``.

Notes
-----
- Logs MUST NOT contain pixel data or raw uploads. Only metadata (sizes,
  counts, styles, timings) is logged or audited.
- Fault injection (`SimulationConfig`) is disabled by default and only read by
  the API layer. The masking pipeline never consults it.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pythonjsonlogger import jsonlogger


class MaskingConfig(BaseModel):
    """Masking filter parameters.

    blur_radius: Gaussian kernel radius in pixels (kernel side = 2r+1).
    overlay_opacity: strength of the black composite used by the black bar.
    seed: when set, region synthesis is reproducible across requests.
    """

    default_style: str = Field("blackbar")
    blur_radius: int = Field(15, ge=1, le=50)
    min_pixel_block: int = Field(8, ge=1, le=256)
    overlay_opacity: float = Field(0.9, ge=0.0, le=1.0)
    label_text: str = Field("MASKED", min_length=1)
    label_min_size: float = Field(12.0, gt=0)
    label_height_ratio: float = Field(0.4, gt=0.0, le=1.0)
    label_baseline_ratio: float = Field(0.6, ge=0.0, le=1.0)
    seed: Optional[int] = None

    @field_validator("default_style")
    @classmethod
    def _style_allowed(cls, v: str) -> str:
        allowed = {"blackbar", "blur", "pixelate"}
        v = v.strip().lower()
        if v not in allowed:
            raise ValueError(f"default_style must be one of {allowed}")
        return v


class ProcessingConfig(BaseModel):
    supported_formats: List[str] = Field(default_factory=lambda: ["JPEG", "PNG", "GIF", "WEBP"])
    output_format: str = Field("PNG")
    max_image_pixels: int = Field(40_000_000, ge=1)
    max_upload_bytes: int = Field(10 * 1024 * 1024, ge=1)

    @field_validator("supported_formats")
    @classmethod
    def _upper_formats(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("supported_formats must not be empty")
        return [f.strip().upper() for f in v]

    @field_validator("output_format")
    @classmethod
    def _upper_output(cls, v: str) -> str:
        return v.strip().upper()


class LoggingConfig(BaseModel):
    log_level: str = Field("INFO")
    log_file_path: str = Field("logs/pii_masker.log")
    enable_audit_trail: bool = True
    audit_log_path: str = Field("logs/mask_audit.log")
    max_log_size_mb: int = Field(100, ge=1)
    backup_count: int = Field(5, ge=0)
    json_logs: bool = True

    @field_validator("log_level")
    @classmethod
    def _valid_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v


class SimulationConfig(BaseModel):
    """Artificial latency and failure for exercising client error states.

    The browser mock this service replaces failed 10% of calls after a
    1.5-3.5 s delay. Here everything defaults to off.
    """

    failure_rate: float = Field(0.0, ge=0.0, le=1.0)
    min_delay_s: float = Field(0.0, ge=0.0)
    max_delay_s: float = Field(0.0, ge=0.0)
    failure_message: str = Field("API service temporarily unavailable. Please try again.")

    @model_validator(mode="after")
    def _delay_order(self) -> "SimulationConfig":
        if self.max_delay_s < self.min_delay_s:
            raise ValueError("max_delay_s must be >= min_delay_s")
        return self


class AppConfig(BaseSettings):
    """Top-level application configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PII_MASKER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = Field("dev")
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    mask: MaskingConfig = Field(default_factory=MaskingConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)

    @field_validator("environment")
    @classmethod
    def _env_allowed(cls, v: str) -> str:
        allowed = {"dev", "staging", "prod"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @model_validator(mode="after")
    def _no_faults_in_prod(self) -> "AppConfig":
        if self.environment == "prod" and self.simulation.failure_rate > 0:
            raise ValueError("simulation.failure_rate must be 0 in production")
        return self

    def setup_logging(self) -> None:
        """Attach rotating file handlers for application and audit logs.

        Safe to call repeatedly; handlers for the same file are not duplicated.
        """
        log_path = Path(self.logging.log_file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        level = getattr(logging, self.logging.log_level)
        if self.logging.json_logs:
            formatter: logging.Formatter = jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        else:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        handler = RotatingFileHandler(
            filename=str(log_path),
            maxBytes=self.logging.max_log_size_mb * 1024 * 1024,
            backupCount=self.logging.backup_count,
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)

        root = logging.getLogger()
        root.setLevel(level)
        if not _has_file_handler(root, handler.baseFilename):
            root.addHandler(handler)
        else:
            handler.close()

        if self.logging.enable_audit_trail:
            audit_path = Path(self.logging.audit_log_path)
            audit_path.parent.mkdir(parents=True, exist_ok=True)
            audit_handler = RotatingFileHandler(
                filename=str(audit_path),
                maxBytes=self.logging.max_log_size_mb * 1024 * 1024,
                backupCount=self.logging.backup_count,
            )
            audit_handler.setLevel(logging.INFO)
            audit_handler.setFormatter(jsonlogger.JsonFormatter())
            audit = logging.getLogger("pii_masker.audit")
            if not _has_file_handler(audit, audit_handler.baseFilename):
                audit.addHandler(audit_handler)
            else:
                audit_handler.close()


def _has_file_handler(logger: logging.Logger, filename: str) -> bool:
    return any(isinstance(h, RotatingFileHandler) and h.baseFilename == filename for h in logger.handlers)


# Provide a single, importable settings instance for application use
try:
    SETTINGS = AppConfig()
except ValidationError:
    logging.getLogger(__name__).error("Invalid PII_MASKER_* environment configuration")
    raise


__all__ = ["AppConfig", "SETTINGS", "MaskingConfig", "ProcessingConfig", "LoggingConfig", "SimulationConfig"]
