from __future__ import annotations
import time


def now_ts() -> int:
    return int(time.time())


def fmt(n: int) -> str:
    """Format number with thousand separators."""
    return f"{n:,}"


def fmt_secs(seconds: int) -> str:
    """Rough remaining time: '2d 3h', '4h 10m' or '12m'."""
    seconds = max(0, int(seconds))
    d = seconds // 86400
    h = (seconds % 86400) // 3600
    m = (seconds % 3600) // 60
    if d:
        return f"{d}d {h}h"
    if h:
        return f"{h}h {m}m"
    return f"{m}m"


def fmt_base_units(amount_base: int, decimals: int = 6) -> str:
    """Render an integer base-unit amount (USDC has 6 decimals) as a decimal string."""
    sign = "-" if amount_base < 0 else ""
    whole, frac = divmod(abs(int(amount_base)), 10 ** decimals)
    if not frac:
        return f"{sign}{whole:,}"
    return f"{sign}{whole:,}.{str(frac).rjust(decimals, '0').rstrip('0')}"
