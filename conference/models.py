"""
Models for the conference session booking system.

- ConferenceSession stores the bookable sessions as published by organisers
  (date plus free-text time and duration, as they appear in the programme)
- Booking stores one confirmed seat per session, grouped by booking_group_id
"""

import uuid

from django.db import models
from django.core.exceptions import ValidationError

from .managers import BookingManager, ConferenceSessionManager
from .matching import has_capacity, session_end, session_start
from .types import BOOKING_STATUS_CONFIRMED


class ConferenceSession(models.Model):
    """
    A single conference session.

    Time of day and duration are kept as entered (e.g. "10:00 AM",
    "1.5 hours"); start_datetime/end_datetime expose the parsed instants.
    """

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')

    category = models.CharField(max_length=100, db_index=True)
    subcategory = models.CharField(max_length=100, blank=True, default='')
    tags = models.JSONField(default=list, blank=True)

    date = models.DateField()
    time = models.CharField(
        max_length=50,
        blank=True,
        default='',
        help_text="Time of day as published, e.g. '10:00 AM' (defaults to 10 AM)"
    )
    duration = models.CharField(
        max_length=50,
        blank=True,
        default='',
        help_text="Duration as published, e.g. '1.5 hours' (defaults to 2 hours)"
    )

    location = models.CharField(max_length=200, blank=True, default='')
    instructor = models.CharField(max_length=200, blank=True, default='')

    capacity = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Maximum attendees (null = unlimited)"
    )
    enrolled = models.PositiveIntegerField(null=True, blank=True, default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ConferenceSessionManager()

    class Meta:
        ordering = ['date', 'id']
        indexes = [
            models.Index(fields=['category', 'date']),
            models.Index(fields=['date']),
        ]

    def __str__(self):
        return f"{self.title} - {self.date.isoformat()} {self.time or ''}".rstrip()

    @property
    def start_datetime(self):
        """Parsed start instant (minutes are not taken from the time string)."""
        return session_start(self)

    @property
    def end_datetime(self):
        """Calculate end datetime based on duration."""
        return session_end(self)

    @property
    def is_full(self):
        return not has_capacity(self)

    def clean(self):
        """Validate session data."""
        super().clean()

        if not isinstance(self.tags, list) or not all(isinstance(tag, str) for tag in self.tags):
            raise ValidationError({
                'tags': 'Tags must be a list of strings.'
            })

        if (
            self.capacity is not None
            and self.enrolled is not None
            and self.enrolled > self.capacity
        ):
            raise ValidationError({
                'enrolled': 'Enrolled count cannot exceed capacity.'
            })


class Booking(models.Model):
    """
    One confirmed seat in one session.

    All records created by a single booking request share booking_group_id.
    """

    STATUS_CHOICES = [
        (BOOKING_STATUS_CONFIRMED, 'Confirmed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session = models.ForeignKey(
        ConferenceSession,
        on_delete=models.CASCADE,
        related_name='bookings'
    )
    booking_group_id = models.UUIDField(db_index=True)
    user_details = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=BOOKING_STATUS_CONFIRMED
    )
    booked_at = models.DateTimeField(auto_now_add=True)

    objects = BookingManager()

    class Meta:
        ordering = ['-booked_at']
        indexes = [
            models.Index(fields=['booking_group_id', 'session']),
        ]

    def __str__(self):
        return f"{self.booking_group_id} - {self.session.title} [{self.status}]"
