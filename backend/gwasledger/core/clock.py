# SPDX-License-Identifier: Apache-2.0
"""UTC timestamps."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Aware UTC view of a stored timestamp; some database drivers return naive UTC values on read."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
