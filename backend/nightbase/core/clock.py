from __future__ import annotations

import datetime as dt


def to_naive_utc(value: dt.datetime | None) -> dt.datetime | None:
    """Timestamps are stored naive in UTC; aware values are converted, naive ones kept as is."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
