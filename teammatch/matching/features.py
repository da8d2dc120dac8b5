"""
Feature extraction for card matching.

Responsibilities:
- Intersect role/skill tags case-insensitively.
- Measure weekly availability overlap between two windows.

Non-Responsibilities:
- No weighting logic.
- No threshold logic.

Invariant:
Unparseable or empty windows produce zero overlap, never an error.
"""

from typing import List, Sequence

from ..models import Availability
from ..normalize import minutes_to_hours, parse_clock_time, tag_key


def tag_intersection(source_tags: Sequence[str], candidate_tags: Sequence[str]) -> List[str]:
    """Tags present on both sides, in source order and source casing."""
    candidate_keys = {tag_key(t) for t in candidate_tags}
    return [t for t in source_tags if tag_key(t) in candidate_keys]


def compute_overlap_hours(a: Availability, b: Availability) -> float:
    """
    Effective weekly overlap, in hours, between two availability windows.

    The clock-time intersection counts once per shared day-class, so two
    people free on both weekdays and weekends get double the raw overlap.
    """
    a_start = parse_clock_time(a.start_time)
    a_end = parse_clock_time(a.end_time)
    b_start = parse_clock_time(b.start_time)
    b_end = parse_clock_time(b.end_time)

    if a_start is None or a_end is None or b_start is None or b_end is None:
        return 0.0
    if a_end <= a_start or b_end <= b_start:
        return 0.0

    overlap_mins = max(0, min(a_end, b_end) - max(a_start, b_start))

    weekday_factor = 1 if (a.weekdays and b.weekdays) else 0
    weekend_factor = 1 if (a.weekends and b.weekends) else 0

    return minutes_to_hours(overlap_mins * (weekday_factor + weekend_factor))
