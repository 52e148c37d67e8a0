# src/wallet_sso/db/time.py
"""Time utilities shared by the persistence layer and services."""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Protocol


def to_iso(epoch_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string with a `Z` suffix."""
    moment = datetime.fromtimestamp(epoch_ms / 1000, UTC)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class Clock(Protocol):
    """Source of wall-clock time in epoch milliseconds."""

    def now_ms(self) -> int: ...


class SystemClock:
    """Clock backed by the host's wall clock."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)
