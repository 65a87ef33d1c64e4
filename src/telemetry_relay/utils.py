"""
Small time and id helpers shared by the queue and the manager.
"""

import time
import uuid


def generate_id() -> str:
    """Generate a UUID string for queued event identification."""
    return str(uuid.uuid4())


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)
