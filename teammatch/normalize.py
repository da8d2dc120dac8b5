import re
from typing import Iterable, List, Optional

# Strict HH:MM, no single-digit hours, no seconds.
CLOCK_TIME_RE = re.compile(r"([01][0-9]|2[0-3]):([0-5][0-9])")


def tag_key(value: str) -> str:
    return value.strip().lower()


def normalize_tag_set(values: Iterable[str]) -> List[str]:
    """
    Trim, drop empty entries and dedupe tags case-insensitively.
    The first spelling seen wins and insertion order is kept.
    """
    seen = set()
    out: List[str] = []
    for raw in values or []:
        v = str(raw).strip()
        if not v:
            continue
        key = v.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(v)
    return out


def parse_clock_time(text) -> Optional[int]:
    """Parse a 24h "HH:MM" string into minutes since midnight, or None."""
    if not isinstance(text, str):
        return None
    m = CLOCK_TIME_RE.fullmatch(text)
    if not m:
        return None
    return int(m.group(1)) * 60 + int(m.group(2))


def minutes_to_hours(minutes: float) -> float:
    return minutes / 60
