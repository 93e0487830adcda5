"""Error taxonomy for the masking engine.

All errors are terminal for the current request. The engine never retries;
callers decide what to surface to the user.
"""

from __future__ import annotations


class ProcessingError(Exception):
    """Base class for failures while masking a single image."""


class DecodeError(ProcessingError):
    """Input bytes are empty, corrupt, or in an unsupported format."""


class EncodeError(ProcessingError):
    """The masked buffer could not be serialized to output bytes."""


class InvalidRegionError(ProcessingError):
    """A region falls (partly) outside the pixel buffer or has no area."""


__all__ = ["ProcessingError", "DecodeError", "EncodeError", "InvalidRegionError"]
