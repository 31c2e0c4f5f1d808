"""
Greedy arrangement of scored sessions into a conflict-free schedule.

Conflict removal keeps the highest-scored session of every overlapping group
by walking sessions in score order. This is not the optimal weighted interval
schedule; a lower-scored pair that together outweighs one higher-scored
session is still discarded.
"""

from typing import List

from .matching import sessions_overlap
from .types import MAX_GAP_MINUTES, ScoredSession


def arrange_greedy(scored_sessions: List[ScoredSession], avoid_gaps: bool = True) -> List[ScoredSession]:
    """
    Remove time conflicts and, optionally, sessions that leave long gaps.

    Args:
        scored_sessions: Sessions with their scores
        avoid_gaps: When True the result is chronological and gap-limited;
                    otherwise it stays in score order

    Returns:
        New list of ScoredSession instances
    """
    non_conflicting = remove_conflicts(scored_sessions)

    if avoid_gaps:
        chronological = sorted(non_conflicting, key=lambda item: item.start)
        return minimize_gaps(chronological)

    return non_conflicting


def remove_conflicts(scored_sessions: List[ScoredSession]) -> List[ScoredSession]:
    """Accept sessions by descending score, skipping any that overlap one already accepted."""
    # sorted() is stable, so equal scores keep their incoming order
    by_score = sorted(scored_sessions, key=lambda item: item.score, reverse=True)
    chosen: List[ScoredSession] = []

    for candidate in by_score:
        if not any(sessions_overlap(candidate.session, kept.session) for kept in chosen):
            chosen.append(candidate)

    return chosen


def minimize_gaps(sessions: List[ScoredSession], max_gap_minutes: int = MAX_GAP_MINUTES) -> List[ScoredSession]:
    """
    Drop sessions that start too long after the previously kept one ends.

    Expects chronologically sorted input. Single forward pass: a dropped
    session is never reconsidered and never becomes the reference point.
    """
    if len(sessions) <= 1:
        return list(sessions)

    result = [sessions[0]]

    for current in sessions[1:]:
        previous = result[-1]
        gap_minutes = (current.start - previous.end).total_seconds() / 60
        if gap_minutes <= max_gap_minutes:
            result.append(current)

    return result
