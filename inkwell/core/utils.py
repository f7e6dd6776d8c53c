"""
Shared utility functions.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)
