"""
Scoring of conference sessions against a user profile.

A session's score blends five sub-scores:

- tag overlap and category match (relevance, the larger of the two counts)
- fit with the preferred time window
- freshness (earlier in the day is better)
- remaining seats

A session with neither tag overlap nor category match scores 0 no matter how
well it fits otherwise. Scores are derived per request and never stored.

The parse helpers below are shared with the arranger, the booking checks and
the calendar export so that every part of the system agrees on when a
session starts and ends.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from django.utils import timezone
from django.utils.dateparse import parse_date

from .types import (
    AVAILABILITY_WEIGHT,
    DEFAULT_DURATION_HOURS,
    DEFAULT_SESSION_HOUR,
    EXACT_TAG_WEIGHT,
    FRESHNESS_WEIGHT,
    PARTIAL_TAG_WEIGHT,
    RELEVANCE_WEIGHT,
    SUBCATEGORY_MATCH_SCORE,
    TIME_FIT_WEIGHT,
    TimePreference,
    UserProfile,
)


TIME_PATTERN = re.compile(r'(\d+):?(\d*)\s*(AM|PM)', re.IGNORECASE)
DURATION_PATTERN = re.compile(r'(\d+\.?\d*)\s*hours?', re.IGNORECASE)

INDUSTRY_CATEGORIES = {
    'marketing': {'digitalmarketing', 'contentmarketing', 'socialmedia', 'emailmarketing'},
    'tech': {'webdevelopment', 'datascience', 'devops', 'productmanagement'},
    'technology': {'webdevelopment', 'datascience', 'devops', 'productmanagement'},
    'sales': {'sales'},
    'finance': {'finance'},
}


def score_session(session, profile: UserProfile) -> float:
    """
    Score a single session against a user profile.

    Args:
        session: Session record (model instance or any object with session attributes)
        profile: UserProfile of the requesting user

    Returns:
        Score rounded to two decimals; 0.0 when the session is irrelevant
    """
    tag_overlap = calculate_tag_overlap(session.tags or [], profile.focus)
    category_match = calculate_category_match(session, profile)

    if tag_overlap == 0 and category_match == 0:
        return 0.0

    time_fit = calculate_time_fit(session, profile.time_pref)
    freshness = calculate_freshness(session)
    availability = calculate_availability(session)

    score = (
        RELEVANCE_WEIGHT * max(tag_overlap, category_match)
        + TIME_FIT_WEIGHT * time_fit
        + FRESHNESS_WEIGHT * freshness
        + AVAILABILITY_WEIGHT * availability
    )
    return round(score, 2)


def calculate_tag_overlap(session_tags: Iterable[str], focus: Iterable[str]) -> float:
    """
    Measure how well session tags cover the user's focus terms.

    An exact (case-insensitive, trimmed) match counts 1.0. A tag without an
    exact match earns 0.3 for every focus term it contains or is contained in.
    The total is divided by the number of focus terms and capped at 1.0.
    """
    session_tags = list(session_tags)
    focus_terms = [term.lower().strip() for term in focus]
    if not session_tags or not focus_terms:
        return 0.0

    focus_set = set(focus_terms)
    exact_matches = 0
    partial_matches = 0

    for tag in session_tags:
        tag_lower = tag.lower().strip()
        if tag_lower in focus_set:
            exact_matches += 1
            continue
        for term in focus_terms:
            if term in tag_lower or tag_lower in term:
                partial_matches += 1

    raw = exact_matches * EXACT_TAG_WEIGHT + partial_matches * PARTIAL_TAG_WEIGHT
    return min(1.0, raw / max(1, len(focus_terms)))


def calculate_category_match(session, profile: UserProfile) -> float:
    """Score 1.0 for an expected category, 0.7 for a focus/subcategory hit, else 0."""
    if not profile.industry:
        return 0.0

    expected = INDUSTRY_CATEGORIES.get(profile.industry.lower(), set())
    category = (session.category or '').lower()
    if category in expected:
        return 1.0

    # A missing subcategory is '', which every focus term contains.
    subcategory = (session.subcategory or '').lower().strip()
    for term in profile.focus:
        term_lower = term.lower()
        if term_lower in subcategory or subcategory in term_lower:
            return SUBCATEGORY_MATCH_SCORE

    return 0.0


def calculate_time_fit(session, time_pref: Optional[TimePreference]) -> float:
    """1.0 inside the window, 0.5 on partial overlap, 0.0 when disjoint."""
    if time_pref is None:
        return 1.0

    start = session_start(session)
    end = session_end(session)

    if start >= time_pref.start and end <= time_pref.end:
        return 1.0
    if end > time_pref.start and start < time_pref.end:
        return 0.5
    return 0.0


def calculate_freshness(session) -> float:
    """Linear ramp from 1.0 at 9:00 down to 0.0 at 20:00."""
    hour = session_start(session).hour
    if 9 <= hour <= 20:
        return 1.0 - (hour - 9) / 11
    return 0.0


def calculate_availability(session) -> float:
    """Share of seats still free; sessions without limits count as fully open."""
    if not session.capacity or not session.enrolled:
        return 1.0
    return (session.capacity - session.enrolled) / session.capacity


def has_capacity(session) -> bool:
    """Whether at least one seat is left. Unlimited sessions always have one."""
    if session.capacity is None or session.enrolled is None:
        return True
    return session.enrolled < session.capacity


def parse_time(time_string: Optional[str]) -> int:
    """
    Extract the hour of day from strings like "10:00 AM" or "2 PM".

    Minutes are ignored. Anything unrecognised falls back to 10.
    """
    if not time_string:
        return DEFAULT_SESSION_HOUR

    match = TIME_PATTERN.search(time_string)
    if not match:
        return DEFAULT_SESSION_HOUR

    hour = int(match.group(1))
    period = match.group(3).upper()

    if period == 'PM' and hour != 12:
        hour += 12
    if period == 'AM' and hour == 12:
        hour = 0

    return hour


def parse_duration(duration_string: Optional[str]) -> float:
    """Extract hours from strings like "1.5 hours"; defaults to 2.0."""
    if not duration_string:
        return DEFAULT_DURATION_HOURS

    match = DURATION_PATTERN.search(duration_string)
    if not match:
        return DEFAULT_DURATION_HOURS
    return float(match.group(1))


def parse_session_datetime(session_date, time_string: Optional[str]) -> datetime:
    """
    Combine a calendar date with the hour parsed from a free-text time.

    Args:
        session_date: date object or ISO date string
        time_string: Free-text time of day

    Returns:
        Timezone-aware datetime on the hour (minutes are always zero)
    """
    if isinstance(session_date, datetime):
        session_date = session_date.date()
    elif not isinstance(session_date, date):
        parsed = parse_date(str(session_date))
        if parsed is None:
            raise ValueError(f"Invalid session date: {session_date!r}")
        session_date = parsed

    midnight = datetime.combine(session_date, time())
    naive = midnight + timedelta(hours=parse_time(time_string))
    return timezone.make_aware(naive)


def session_start(session) -> datetime:
    """Start instant of a session."""
    return parse_session_datetime(session.date, session.time)


def session_end(session) -> datetime:
    """End instant of a session (start plus parsed duration)."""
    return session_start(session) + timedelta(hours=parse_duration(session.duration))


def sessions_overlap(session_a, session_b) -> bool:
    """Half-open interval overlap: touching sessions do not overlap."""
    start_a, end_a = session_start(session_a), session_end(session_a)
    start_b, end_b = session_start(session_b), session_end(session_b)
    return not (end_a <= start_b or end_b <= start_a)
