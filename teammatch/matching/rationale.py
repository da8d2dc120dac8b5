"""
Human-readable "why matched" bullets for a scored card pair.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Tuple

from ..models import IntentCard
from .scoring import MatchScoreBreakdown

MAX_REASONS = 3
MAX_ROLES_MENTIONED = 3
MAX_SKILLS_MENTIONED = 4


def format_hours(hours: float) -> str:
    """One decimal place, halves rounded up on the exact float value."""
    return str(Decimal(hours).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def explain(source: IntentCard, candidate: IntentCard, breakdown: MatchScoreBreakdown) -> List[str]:
    """
    Up to three reasons, strongest component first.

    An empty list is a valid answer: a pair can pass the hard filter and
    still round every component down to zero.
    """
    reasons: List[Tuple[int, str]] = []

    if breakdown.role > 0 and breakdown.role_overlap:
        roles = ", ".join(breakdown.role_overlap[:MAX_ROLES_MENTIONED])
        reasons.append((breakdown.role, f"Role overlap: you both selected {roles}."))

    if breakdown.skill > 0 and breakdown.skill_overlap:
        skills = ", ".join(breakdown.skill_overlap[:MAX_SKILLS_MENTIONED])
        reasons.append((breakdown.skill, f"Skill overlap: {skills}."))

    if breakdown.availability > 0:
        hours = format_hours(breakdown.overlap_hours)
        if source.availability.weekends and candidate.availability.weekends:
            text = f"You both are available on weekends, with ~{hours}h time overlap."
        else:
            text = f"Your availability overlaps by ~{hours} hours."
        reasons.append((breakdown.availability, text))

    if breakdown.commitment > 0:
        reasons.append((
            breakdown.commitment,
            f"Commitment level aligns ({source.commitment_level.value} vs {candidate.commitment_level.value}).",
        ))

    if breakdown.hostel > 0:
        reasons.append((breakdown.hostel, f"Same hostel status ({source.hostel_status.value})."))

    # sorted() is stable, so ties keep generation order.
    reasons = sorted(reasons, key=lambda r: r[0], reverse=True)
    return [text for _, text in reasons[:MAX_REASONS]]
