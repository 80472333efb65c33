# =============================================================================
# cage_core/utils/clock.py
# Wall-clock helpers (epoch milliseconds, as stored in history entries)
# =============================================================================

import time


def now_millis() -> int:
    """Current client time in epoch milliseconds."""
    return int(time.time() * 1000)
