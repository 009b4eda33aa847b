# display helpers for explorer rows and voting cards
from typing import Optional

UNKNOWN = "unknown"
PROGRESS_HORIZON = 3600


def short_hash(value: Optional[str], start: int = 10, end: int = 8) -> str:
    if not value:
        return "-"
    if len(value) <= start + end:
        return value
    return f"{value[:start]}…{value[-end:]}"


def short_address(value: Optional[str]) -> str:
    if not value:
        return "-"
    return f"{value[:6]}…{value[-4:]}"


def time_ago(timestamp: Optional[int], now: int) -> str:
    if not timestamp:
        return UNKNOWN
    diff = max(now - timestamp, 0)
    if diff < 10:
        return "a few seconds ago"
    if diff < 60:
        return f"{diff}s ago"
    minutes = diff // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"


def format_remaining(seconds: int) -> str:
    s = max(seconds, 0)
    h, rest = divmod(s, 3600)
    m, sec = divmod(rest, 60)
    if h > 0:
        return f"{h}h {m}m"
    if m > 0:
        return f"{m}m {sec}s"
    return f"{sec}s"


def time_progress(end_time: int, now: int) -> int:
    """
    Rough countdown progress in percent. There is no start time on chain, so
    the bar is measured against a one hour horizon and kept within 5..95
    until the voting ends.
    """
    if end_time <= now:
        return 100
    remaining = end_time - now
    return min(95, max(5, round((1 - remaining / PROGRESS_HORIZON) * 100)))


def explorer_link(base: Optional[str], kind: str, value) -> Optional[str]:
    if not base or value is None:
        return None
    base = base.rstrip("/")
    if kind == "tx":
        return f"{base}/tx/{value}"
    if kind == "block":
        return f"{base}/block/{value}"
    if kind == "address":
        return f"{base}/address/{value}"
    raise ValueError(f"unknown link kind: {kind}")
