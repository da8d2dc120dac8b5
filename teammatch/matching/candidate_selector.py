"""
Candidate selection.

Responsibilities:
- Decide whether a candidate card is admissible for a source card.
- Drop cards the viewer must never be matched against (own, private).

Non-Responsibilities:
- No scoring.
- No ordering or truncation.

Invariant:
A card failing the hard filter is never scored or shown, whatever its score
would have been.
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

from ..config import get_settings
from ..models import IntentCard
from .features import compute_overlap_hours, tag_intersection

REASON_AVAILABILITY = "Availability does not overlap enough."
REASON_NO_INTEREST = "No role or skill overlap."


@dataclass
class HardFilterResult:
    ok: bool
    overlap_hours: float
    role_overlap: List[str] = field(default_factory=list)
    skill_overlap: List[str] = field(default_factory=list)
    reason: Optional[str] = None


def passes_hard_filters(
    source: IntentCard,
    candidate: IntentCard,
    min_overlap_hours: Optional[float] = None,
) -> HardFilterResult:
    """
    Binary admissibility gate.

    Args:
        source: The viewer's card
        candidate: A card from the public pool
        min_overlap_hours: Threshold override (default: configured MIN_OVERLAP_HOURS)

    Returns:
        HardFilterResult; `reason` is set only when `ok` is False
    """
    if min_overlap_hours is None:
        min_overlap_hours = get_settings().min_overlap_hours

    role_overlap = tag_intersection(source.looking_for_roles, candidate.looking_for_roles)
    skill_overlap = tag_intersection(source.required_skills, candidate.required_skills)
    overlap_hours = compute_overlap_hours(source.availability, candidate.availability)

    # Two weekend-available people count as time-compatible regardless of clock overlap.
    weekends_match = source.availability.weekends and candidate.availability.weekends
    time_ok = overlap_hours >= min_overlap_hours or weekends_match
    interest_ok = len(role_overlap) >= 1 or len(skill_overlap) >= 1

    if not time_ok:
        reason = REASON_AVAILABILITY
    elif not interest_ok:
        reason = REASON_NO_INTEREST
    else:
        reason = None

    return HardFilterResult(
        ok=reason is None,
        reason=reason,
        overlap_hours=overlap_hours,
        role_overlap=role_overlap,
        skill_overlap=skill_overlap,
    )


def is_matchable(source: IntentCard, candidate: IntentCard, viewer_uid: str) -> bool:
    """Only other people's public cards can be candidates."""
    return (
        candidate.is_public
        and candidate.owner_uid != viewer_uid
        and candidate.id != source.id
    )


def select_candidates(
    source: IntentCard,
    pool: Iterable[IntentCard],
    viewer_uid: str,
    min_overlap_hours: Optional[float] = None,
) -> Iterator[Tuple[IntentCard, HardFilterResult]]:
    """
    Yield (candidate, filter result) for each matchable card in the pool.

    Own cards, private cards and the source itself are skipped without a
    result. Rejected cards are yielded too so callers can count reasons;
    only results with `ok` may go on to scoring.
    """
    for candidate in pool:
        if not is_matchable(source, candidate, viewer_uid):
            continue
        yield candidate, passes_hard_filters(source, candidate, min_overlap_hours)
