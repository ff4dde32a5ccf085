"""Utilities for safe log fields."""

import hashlib
from typing import Any


def safe_log_identifier(value: Any, *, prefix: str) -> str:
    """Deterministic non-reversible token for principal ids and emails in log lines."""
    text = str(value or "").strip()
    if not text:
        return f"{prefix}-missing"
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"
