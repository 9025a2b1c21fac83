"""
Human-facing identifiers: booking/order/ticket numbers and vendor slugs.
"""
import re
import uuid
from datetime import datetime
from typing import Callable, Optional

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def generate_reference(prefix: str, now: Optional[datetime] = None) -> str:
    """e.g. BK-20250301-3F9A1C2B"""
    now = now or datetime.utcnow()
    return f"{prefix}-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def slugify(value: str) -> str:
    slug = _SLUG_STRIP.sub("-", value.lower()).strip("-")
    return slug[:60] or "vendor"


def unique_slug(value: str, exists: Callable[[str], bool]) -> str:
    """Slug for value, suffixed -2, -3, ... until exists() says it is free."""
    base = slugify(value)
    candidate = base
    counter = 2
    while exists(candidate):
        candidate = f"{base}-{counter}"
        counter += 1
    return candidate
