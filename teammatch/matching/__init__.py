"""
Matching engine: hard filters, weighted scoring and match rationale.

Everything in this package is a pure function of the cards passed in.
No storage access, no logging, no mutation of inputs.
"""

from .features import compute_overlap_hours, tag_intersection
from .candidate_selector import HardFilterResult, passes_hard_filters, select_candidates
from .scoring import MatchScoreBreakdown, commitment_bonus, score_match
from .rationale import explain

__all__ = [
    "compute_overlap_hours",
    "tag_intersection",
    "HardFilterResult",
    "passes_hard_filters",
    "select_candidates",
    "MatchScoreBreakdown",
    "commitment_bonus",
    "score_match",
    "explain",
]
