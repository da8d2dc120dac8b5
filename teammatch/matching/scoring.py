"""
Scoring logic for card matching.

Responsibilities:
- Compute a deterministic 0-100 compatibility score for a card pair.
- Emit the per-component breakdown used for ranking and explanations.

Non-Responsibilities:
- No admissibility decisions (see candidate_selector).
- No ordering of results.

Invariant:
Given identical inputs, this module must always return the same breakdown.
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from ..constants import SCORED_OVERLAP_CAP_HOURS
from ..models import CommitmentLevel, IntentCard
from .features import compute_overlap_hours, tag_intersection

ROLE_WEIGHT = 40
SKILL_WEIGHT = 30
AVAILABILITY_WEIGHT = 20
HOSTEL_BONUS = 5
COMMITMENT_BONUS_SAME = 5
COMMITMENT_BONUS_ADJACENT = 2


@dataclass
class MatchScoreBreakdown:
    role: int
    skill: int
    availability: int
    hostel: int
    commitment: int
    total: int
    overlap_hours: float
    role_overlap: List[str] = field(default_factory=list)
    skill_overlap: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def _round_half_up(n: float) -> int:
    # round() is banker's rounding; scores round .5 upwards.
    return int(math.floor(n + 0.5))


def _overlap_ratio(overlap: int, source_size: int, candidate_size: int) -> float:
    return overlap / max(1, max(source_size, candidate_size))


def commitment_bonus(a: CommitmentLevel, b: CommitmentLevel) -> int:
    """5 for the same level, 2 for adjacent levels, 0 for casual vs win."""
    try:
        distance = abs(CommitmentLevel(a).rank - CommitmentLevel(b).rank)
    except ValueError:
        return 0
    if distance == 0:
        return COMMITMENT_BONUS_SAME
    if distance == 1:
        return COMMITMENT_BONUS_ADJACENT
    return 0


def score_match(source: IntentCard, candidate: IntentCard) -> MatchScoreBreakdown:
    """
    Score a candidate card against a source card.

    Total function: it does not require the pair to have passed the hard
    filter, although callers only rank pairs that did.
    """
    role_overlap = tag_intersection(source.looking_for_roles, candidate.looking_for_roles)
    skill_overlap = tag_intersection(source.required_skills, candidate.required_skills)
    overlap_hours = compute_overlap_hours(source.availability, candidate.availability)

    role_score = _clamp(
        _overlap_ratio(len(role_overlap), len(source.looking_for_roles), len(candidate.looking_for_roles))
        * ROLE_WEIGHT,
        0,
        ROLE_WEIGHT,
    )
    skill_score = _clamp(
        _overlap_ratio(len(skill_overlap), len(source.required_skills), len(candidate.required_skills))
        * SKILL_WEIGHT,
        0,
        SKILL_WEIGHT,
    )
    availability_score = _clamp(
        (min(overlap_hours, SCORED_OVERLAP_CAP_HOURS) / SCORED_OVERLAP_CAP_HOURS) * AVAILABILITY_WEIGHT,
        0,
        AVAILABILITY_WEIGHT,
    )
    hostel_score = HOSTEL_BONUS if source.hostel_status == candidate.hostel_status else 0
    commitment_score = commitment_bonus(source.commitment_level, candidate.commitment_level)

    total = _clamp(role_score + skill_score + availability_score + hostel_score + commitment_score, 0, 100)

    return MatchScoreBreakdown(
        role=_round_half_up(role_score),
        skill=_round_half_up(skill_score),
        availability=_round_half_up(availability_score),
        hostel=_round_half_up(hostel_score),
        commitment=_round_half_up(commitment_score),
        total=_round_half_up(total),
        overlap_hours=overlap_hours,
        role_overlap=role_overlap,
        skill_overlap=skill_overlap,
    )
