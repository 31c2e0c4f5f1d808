"""
Service layer for recommendation and booking logic.
Services are framework-agnostic and handle all business operations.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.core.exceptions import ValidationError as ModelValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from .arrangement import arrange_greedy
from .exceptions import ConflictError, NotFoundError, UpstreamError, ValidationError
from .ics import build_calendar
from .matching import has_capacity, score_session, sessions_overlap
from .models import Booking, ConferenceSession
from .reordering import reorder_sessions
from .routing import route_category
from .types import (
    BOOKING_STATUS_CONFIRMED,
    DEFAULT_TOP_K,
    GENERAL_CATEGORY,
    MAX_ARRANGEMENT_CANDIDATES,
    NO_MATCHES_MESSAGE,
    NO_SESSIONS_MESSAGE,
    RELEVANCE_FLOOR,
    BookingResult,
    RecommendationResult,
    ScoredSession,
    TimePreference,
    UserProfile,
)

logger = logging.getLogger(__name__)


CANDIDATE_WINDOW_EXTRA_DAYS = 7


def recommend_sessions(
    industry: str,
    focus: Iterable[str] = (),
    time_pref: Optional[TimePreference] = None,
    avoid_gaps: bool = True,
    top_k: int = DEFAULT_TOP_K,
    use_llm: bool = False
) -> RecommendationResult:
    """
    Recommend a conflict-free set of sessions for a user profile.

    Args:
        industry: User's industry (required)
        focus: Free-text focus keywords
        time_pref: Preferred time window, if any
        avoid_gaps: Whether to drop sessions that leave gaps over 90 minutes
        top_k: Desired number of sessions
        use_llm: Whether to let the LLM reorder the final list

    Returns:
        RecommendationResult with scored sessions in final order

    Raises:
        ValidationError: If industry is missing or top_k is not positive
        UpstreamError: If the session store fails
    """
    profile = UserProfile(industry=industry, focus=tuple(focus or ()), time_pref=time_pref)
    _validate_recommendation_input(profile, top_k)

    category = route_category(profile.industry, profile.focus)
    logger.info(f"Routed industry '{profile.industry}' to category {category}")

    sessions = _fetch_candidates(category, profile, top_k)
    if not sessions:
        return RecommendationResult(
            request_id=uuid.uuid4(),
            category=category,
            message=NO_SESSIONS_MESSAGE
        )

    available = [session for session in sessions if has_capacity(session)]
    scored = [ScoredSession(session, score_session(session, profile)) for session in available]
    relevant = [item for item in scored if item.score > RELEVANCE_FLOOR]

    top_sessions = sorted(relevant, key=lambda item: item.score, reverse=True)
    top_sessions = top_sessions[:min(top_k * 2, MAX_ARRANGEMENT_CANDIDATES)]

    final = _arrange_with_fallback(top_sessions, avoid_gaps, top_k)

    llm_optimized = False
    if use_llm and len(final) > 1:
        final, llm_optimized = reorder_sessions(final, profile)

    return RecommendationResult(
        request_id=uuid.uuid4(),
        category=category,
        items=final,
        total_analyzed=len(available),
        top_candidates=len(top_sessions),
        llm_optimized=llm_optimized,
        message=None if final else NO_MATCHES_MESSAGE
    )


def _validate_recommendation_input(profile: UserProfile, top_k: int) -> None:
    """Validate recommendation request data."""
    if not profile.industry:
        raise ValidationError("Industry is required")

    if top_k <= 0:
        raise ValidationError("topK must be positive")

    time_pref = profile.time_pref
    if time_pref is not None and time_pref.start >= time_pref.end:
        raise ValidationError("Time preference start must be before end")


def _fetch_candidates(category: str, profile: UserProfile, top_k: int) -> List[ConferenceSession]:
    """Fetch sessions for the routed category, falling back to any upcoming sessions."""
    try:
        queryset = ConferenceSession.objects.upcoming()
        if category != GENERAL_CATEGORY:
            queryset = queryset.in_category(category)

        time_pref = profile.time_pref
        if time_pref is not None:
            queryset = queryset.between_dates(
                timezone.localdate(time_pref.start),
                timezone.localdate(time_pref.end) + timedelta(days=CANDIDATE_WINDOW_EXTRA_DAYS)
            )

        sessions = list(queryset)
        logger.info(f"Found {len(sessions)} candidate sessions for category {category}")

        if not sessions:
            sessions = list(ConferenceSession.objects.upcoming()[:top_k])
            logger.info(f"No sessions for category {category}, broad query found {len(sessions)}")
    except DatabaseError as e:
        logger.error(f"Failed to fetch sessions: {e}")
        raise UpstreamError("Failed to fetch sessions") from e

    return sessions


def _arrange_with_fallback(
    top_sessions: List[ScoredSession],
    avoid_gaps: bool,
    top_k: int
) -> List[ScoredSession]:
    """Arrange candidates; use plain score order if arrangement drops too many."""
    arranged = arrange_greedy(top_sessions, avoid_gaps)[:top_k]

    if len(arranged) < min(top_k, len(top_sessions) / 2):
        logger.info("Arrangement filtered out too many sessions, using top scored sessions")
        return top_sessions[:top_k]

    return arranged


@transaction.atomic
def book_sessions(
    session_ids: Iterable[int],
    user_details: Optional[Dict[str, Any]] = None
) -> BookingResult:
    """
    Book a set of sessions as one group.

    The availability check and the enrolment update are not guarded by a
    row lock, so two concurrent bookings of the last seat can both succeed.

    Args:
        session_ids: IDs of the sessions to book
        user_details: Arbitrary attendee details stored with each record

    Unknown IDs are skipped and reported back; the rest are booked.

    Returns:
        BookingResult with the new group id, booked sessions and skipped IDs

    Raises:
        ValidationError: If no session IDs are given
        NotFoundError: If none of the requested sessions exist
        ConflictError: If a session is full or two sessions overlap
        UpstreamError: If the session store fails
    """
    requested_ids = _unique_ids(session_ids)
    if not requested_ids:
        raise ValidationError("Session IDs are required")

    sessions = _fetch_requested_sessions(requested_ids)
    found_ids = {session.id for session in sessions}
    missing = [session_id for session_id in requested_ids if session_id not in found_ids]
    if missing:
        logger.info(f"Skipping unknown sessions {missing}")

    unavailable = [session.id for session in sessions if not has_capacity(session)]
    conflicts = find_conflicts(sessions)

    if unavailable:
        raise ConflictError(
            "Some sessions are no longer available",
            unavailable_sessions=unavailable
        )

    if conflicts:
        raise ConflictError(
            "Selected sessions have time conflicts",
            conflicts=[list(pair) for pair in conflicts]
        )

    booking_id = uuid.uuid4()
    details = user_details or {}

    try:
        Booking.objects.bulk_create([
            Booking(
                session=session,
                booking_group_id=booking_id,
                user_details=details,
                status=BOOKING_STATUS_CONFIRMED
            )
            for session in sessions
        ])
        for session in sessions:
            session.enrolled = (session.enrolled or 0) + 1
            session.save(update_fields=['enrolled', 'updated_at'])
    except DatabaseError as e:
        logger.error(f"Failed to create booking: {e}")
        raise UpstreamError("Failed to create booking") from e

    logger.info(f"Created booking {booking_id} for sessions {[session.id for session in sessions]}")
    return BookingResult(
        booking_id=booking_id,
        sessions=sessions,
        user_details=details,
        missing_session_ids=missing
    )


def find_conflicts(sessions: List[ConferenceSession]) -> List[Tuple[int, int]]:
    """Return the id pair of every two sessions that overlap in time."""
    conflicts = []
    for index, first in enumerate(sessions):
        for second in sessions[index + 1:]:
            if sessions_overlap(first, second):
                conflicts.append((first.id, second.id))
    return conflicts


def _unique_ids(session_ids: Iterable[int]) -> List[int]:
    """Drop duplicate IDs while keeping the requested order."""
    seen = set()
    unique = []
    for session_id in session_ids or ():
        if session_id not in seen:
            seen.add(session_id)
            unique.append(session_id)
    return unique


def _fetch_requested_sessions(requested_ids: List[int]) -> List[ConferenceSession]:
    """Fetch the existing sessions in requested order; at least one must exist."""
    try:
        found = {session.id: session for session in ConferenceSession.objects.with_ids(requested_ids)}
    except DatabaseError as e:
        logger.error(f"Failed to fetch sessions {requested_ids}: {e}")
        raise UpstreamError("Failed to fetch sessions") from e

    if not found:
        raise NotFoundError("Sessions not found")

    return [found[session_id] for session_id in requested_ids if session_id in found]


def get_booked_sessions(booking_group_id: uuid.UUID) -> List[ConferenceSession]:
    """
    Get the sessions of one booking group in chronological order.

    Raises:
        NotFoundError: If no booking has this group id
    """
    bookings = list(Booking.objects.for_group(booking_group_id).with_sessions())
    if not bookings:
        raise NotFoundError("Booking not found")

    sessions = [booking.session for booking in bookings]
    return sorted(sessions, key=lambda session: (session.start_datetime, session.id))


def export_booking_calendar(booking_group_id: uuid.UUID) -> str:
    """
    Build the calendar file for a booking group.

    Raises:
        NotFoundError: If no booking has this group id
    """
    return build_calendar(get_booked_sessions(booking_group_id))


def get_bookings_for_user(user_id: str) -> List[Booking]:
    """Get a user's booking records, newest first."""
    return list(
        Booking.objects.for_user(user_id).with_sessions().order_by('-booked_at')
    )


@transaction.atomic
def import_sessions(records: Iterable[Dict[str, Any]]) -> int:
    """
    Bulk create sessions from plain dictionaries.

    Args:
        records: Dicts keyed by ConferenceSession field names

    Returns:
        Number of sessions created

    Raises:
        ValueError: If a record is invalid
    """
    sessions = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            raise ValueError(f"Invalid session record #{index}: expected an object")
        session = ConferenceSession(**_session_fields(record))
        try:
            session.full_clean()
        except ModelValidationError as e:
            raise ValueError(f"Invalid session record #{index}: {e}") from e
        sessions.append(session)

    if sessions:
        ConferenceSession.objects.bulk_create(sessions)
    return len(sessions)


IMPORTABLE_FIELDS = (
    'title', 'description', 'category', 'subcategory', 'tags', 'date', 'time',
    'duration', 'location', 'instructor', 'capacity', 'enrolled',
)


def _session_fields(record: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only importable fields; null text fields become empty strings."""
    fields = {name: record[name] for name in IMPORTABLE_FIELDS if name in record}
    for name in ('description', 'subcategory', 'time', 'duration', 'location', 'instructor'):
        if name in fields and fields[name] is None:
            fields[name] = ''
    if fields.get('tags') is None:
        fields['tags'] = []
    return fields
