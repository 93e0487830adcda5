import logging
import os
import random
import sys
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path

import numpy as np
import pytest


def pytest_configure(config):
    """Ensure the project root (one level above tests/) is on sys.path so
    imports like `from pii_masker.core.config import AppConfig` work during tests.
    """
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))

    # keep log files written by pipelines out of the working tree
    log_dir = Path(tempfile.mkdtemp(prefix="pii_masker_logs_"))
    os.environ.setdefault("PII_MASKER_LOGGING__LOG_FILE_PATH", str(log_dir / "pii_masker.log"))
    os.environ.setdefault("PII_MASKER_LOGGING__AUDIT_LOG_PATH", str(log_dir / "mask_audit.log"))


def pytest_collection_finish(session):
    """Detach file handlers attached at import time (e.g. a module-level app)."""
    for lg in (logging.getLogger(), logging.getLogger("pii_masker.audit")):
        for h in list(lg.handlers):
            if isinstance(h, RotatingFileHandler):
                lg.removeHandler(h)
                h.close()


@pytest.fixture(autouse=True)
def _release_log_files():
    """Detach file handlers that a test's pipelines attached."""
    loggers = [logging.getLogger(), logging.getLogger("pii_masker.audit")]
    before = {id(lg): list(lg.handlers) for lg in loggers}
    yield
    for lg in loggers:
        for h in list(lg.handlers):
            if isinstance(h, RotatingFileHandler) and h not in before[id(lg)]:
                lg.removeHandler(h)
                h.close()


@pytest.fixture
def make_buffer():
    from pii_masker.core.buffer import PixelBuffer

    def _make(width=100, height=100, rgba=(255, 255, 255, 255)):
        return PixelBuffer.filled(width, height, rgba)

    return _make


@pytest.fixture
def noisy_buffer():
    """Deterministic random RGBA buffer (50x40)."""
    from pii_masker.core.buffer import PixelBuffer

    gen = np.random.default_rng(1234)
    pixels = gen.integers(0, 256, size=(40, 50, 4), dtype=np.uint8)
    return PixelBuffer.from_array(pixels)


@pytest.fixture
def rng():
    return random.Random(42)
