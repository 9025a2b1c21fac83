"""
Shared schema validators
"""
from datetime import datetime, timezone
from typing import Optional


def naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Return dt as a naive UTC datetime.

    NOTE: columns are stored naive in UTC and compared against
    datetime.utcnow(), so offsets sent by clients ("...Z", "+02:00")
    are converted here and then dropped.
    """
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
