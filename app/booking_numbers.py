import random
import time
from typing import Optional

from config import get_settings


def generate_booking_number(now_ms: Optional[int] = None, draw: Optional[int] = None,
                            prefix: Optional[str] = None) -> str:
    """
    Human-shareable booking reference: prefix + last 6 digits of the epoch
    milliseconds + a 3-digit random draw. Uniqueness is enforced by the
    storage layer, not here.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if draw is None:
        draw = random.randint(0, 999)
    if prefix is None:
        prefix = get_settings().booking_number_prefix
    return f"{prefix}{now_ms % 1_000_000:06d}{draw:03d}"
