"""
NPS aggregates for NPS Sync.

Pure functions over a sequence of records or scores.
"""

import math
from typing import Dict, Iterable, Optional, Sequence

from nps_sync.models.feedback import (
    DETRACTOR_MAX_SCORE,
    PROMOTER_MIN_SCORE,
    FeedbackRecord,
    Role,
)


def calculate_nps(scores: Iterable[int]) -> int:
    """
    Net Promoter Score of a list of 0..10 scores.

    ``round((promoters - detractors) / total * 100)``, 0 for an empty list.
    Halves round up, so 12.5 gives 13 and -12.5 gives -12.

    Args:
        scores: Survey scores.

    Returns:
        Integer in [-100, 100].
    """
    scores = list(scores)
    total = len(scores)
    if total == 0:
        return 0

    promoters = sum(1 for score in scores if score >= PROMOTER_MIN_SCORE)
    detractors = sum(1 for score in scores if score <= DETRACTOR_MAX_SCORE)

    value = (promoters - detractors) * 100 / total
    return math.floor(value + 0.5)


def nps_for(records: Sequence[FeedbackRecord], role: Optional[Role] = None) -> int:
    """NPS of ``records``, optionally restricted to one role."""
    return calculate_nps(
        record.score for record in records if role is None or record.role == role
    )


def nps_breakdown(records: Sequence[FeedbackRecord]) -> Dict[str, int]:
    """
    Count promoters, passives and detractors.

    Returns:
        Dict with promoters, passives, detractors, total and score.
    """
    promoters = sum(1 for record in records if record.is_promoter)
    detractors = sum(1 for record in records if record.is_detractor)
    total = len(records)
    return {
        "promoters": promoters,
        "passives": total - promoters - detractors,
        "detractors": detractors,
        "total": total,
        "score": nps_for(records),
    }


def score_distribution(records: Sequence[FeedbackRecord]) -> Dict[int, int]:
    """Number of responses per score, for every score 0..10."""
    distribution = {score: 0 for score in range(11)}
    for record in records:
        distribution[record.score] += 1
    return distribution
