"""Human-readable business references for sales and restocks."""

import random
import string
from datetime import datetime, timezone
from typing import Optional

_ALPHABET = string.ascii_uppercase + string.digits


def generate_reference(prefix: str = "RSK", now: Optional[datetime] = None) -> str:
    """
    Build a reference like ``SALE-20240115-7KQ2ZD``.

    Args:
        prefix: Reference prefix (``SALE``, ``RSTK``, ...)
        now: Timestamp to stamp the reference with (defaults to UTC now)
    """
    now = now or datetime.now(timezone.utc)
    suffix = "".join(random.choices(_ALPHABET, k=6))
    return f"{prefix}-{now.strftime('%Y%m%d')}-{suffix}"
