"""
iCalendar (RFC 5545) export of booked sessions.

Each session becomes one VEVENT with a display alarm 15 minutes before it
starts. Instants are written in UTC.
"""

import uuid
from datetime import datetime, timezone as dt_timezone
from typing import Iterable, Optional

from django.utils import timezone

from .matching import session_end, session_start


PRODUCT_ID = '-//SessionBooking//Enhanced//EN'
UID_DOMAIN = 'sessionbooking.com'
DEFAULT_LOCATION = 'Online Session'
DEFAULT_ORGANIZER = 'Conference Organizer'
ALARM_TRIGGER = '-PT15M'
ALARM_DESCRIPTION = 'Session starts in 15 minutes'


def escape_text(text: Optional[str]) -> str:
    """Escape a TEXT value: backslash, semicolon, comma and newline; CR is dropped."""
    if not text:
        return ''
    return (
        text.replace('\\', '\\\\')
        .replace(';', '\\;')
        .replace(',', '\\,')
        .replace('\r', '')
        .replace('\n', '\\n')
    )


def format_datetime(value: datetime) -> str:
    """Format an aware datetime as a UTC DATE-TIME value."""
    return value.astimezone(dt_timezone.utc).strftime('%Y%m%dT%H%M%SZ')


def build_description(session) -> str:
    """Event description: session description plus instructor, tags and enrolment."""
    parts = [session.description or '']
    if session.instructor:
        parts.append(f"Instructor: {session.instructor}")
    if session.tags:
        parts.append(f"Tags: {', '.join(session.tags)}")
    if session.capacity and session.enrolled is not None:
        parts.append(f"Capacity: {session.enrolled}/{session.capacity} enrolled")
    return '\n\n'.join(parts)


def build_event(session, stamp: datetime) -> list:
    """Content lines of one VEVENT."""
    return [
        'BEGIN:VEVENT',
        f"UID:session-{session.id}-{uuid.uuid4().hex}@{UID_DOMAIN}",
        f"DTSTAMP:{format_datetime(stamp)}",
        f"DTSTART:{format_datetime(session_start(session))}",
        f"DTEND:{format_datetime(session_end(session))}",
        f"SUMMARY:{escape_text(session.title)}",
        f"DESCRIPTION:{escape_text(build_description(session))}",
        f"LOCATION:{escape_text(session.location or DEFAULT_LOCATION)}",
        f"ORGANIZER:CN={escape_text(session.instructor or DEFAULT_ORGANIZER)}",
        'STATUS:CONFIRMED',
        'TRANSP:OPAQUE',
        'BEGIN:VALARM',
        f"TRIGGER:{ALARM_TRIGGER}",
        'ACTION:DISPLAY',
        f"DESCRIPTION:{ALARM_DESCRIPTION}",
        'END:VALARM',
        'END:VEVENT',
    ]


def build_calendar(sessions: Iterable) -> str:
    """
    Build a VCALENDAR document with one event per session.

    Args:
        sessions: Session records to export

    Returns:
        Calendar text with CRLF line endings
    """
    stamp = timezone.now()
    lines = [
        'BEGIN:VCALENDAR',
        'VERSION:2.0',
        f"PRODID:{PRODUCT_ID}",
        'CALSCALE:GREGORIAN',
        'METHOD:PUBLISH',
    ]
    for session in sessions:
        lines.extend(build_event(session, stamp))
    lines.append('END:VCALENDAR')
    return '\r\n'.join(lines)
