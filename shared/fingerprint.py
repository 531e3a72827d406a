"""Stable short identifiers for grouping recurring errors."""

from __future__ import annotations

import hashlib

FINGERPRINT_LENGTH = 16


def generate_fingerprint(message: str, stack_trace: str | None = None) -> str:
    """Return the first 16 hex chars of sha256(message + stack_trace)."""
    data = message
    if stack_trace is not None:
        data += stack_trace
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]
