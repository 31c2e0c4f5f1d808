"""
Custom managers and querysets for conference models.

QuerySets define chainable query methods.
Managers use QuerySets to enable method chaining.
No business logic should be here - only query operations.
"""

from django.db import models
from django.utils import timezone


class ConferenceSessionQuerySet(models.QuerySet):
    """Custom queryset for ConferenceSession model with chainable methods."""

    def upcoming(self, today=None):
        """Get sessions dated today or later."""
        return self.filter(date__gte=today or timezone.localdate())

    def in_category(self, category):
        """
        Get sessions of one category.

        Args:
            category: category name, e.g. 'DigitalMarketing'
        """
        return self.filter(category=category)

    def between_dates(self, start_date, end_date):
        """
        Get sessions dated within an inclusive date range.

        Args:
            start_date: date object
            end_date: date object
        """
        return self.filter(date__gte=start_date, date__lte=end_date)

    def with_ids(self, session_ids):
        """Get sessions whose primary key is in session_ids."""
        return self.filter(pk__in=list(session_ids))


class ConferenceSessionManager(models.Manager):
    """Custom manager for ConferenceSession model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return ConferenceSessionQuerySet(self.model, using=self._db)

    def upcoming(self, today=None):
        """Get sessions dated today or later."""
        return self.get_queryset().upcoming(today)

    def in_category(self, category):
        """Get sessions of one category."""
        return self.get_queryset().in_category(category)

    def between_dates(self, start_date, end_date):
        """Get sessions dated within an inclusive date range."""
        return self.get_queryset().between_dates(start_date, end_date)

    def with_ids(self, session_ids):
        """Get sessions whose primary key is in session_ids."""
        return self.get_queryset().with_ids(session_ids)


class BookingQuerySet(models.QuerySet):
    """Custom queryset for Booking model with chainable methods."""

    def for_group(self, booking_group_id):
        """Get all records created by one booking request."""
        return self.filter(booking_group_id=booking_group_id)

    def for_user(self, user_id):
        """
        Get bookings made with a given user id in their details.

        Args:
            user_id: value of user_details['user_id']
        """
        return self.filter(user_details__user_id=user_id)

    def with_sessions(self):
        """Join the booked session to avoid one query per record."""
        return self.select_related('session')


class BookingManager(models.Manager):
    """Custom manager for Booking model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return BookingQuerySet(self.model, using=self._db)

    def for_group(self, booking_group_id):
        """Get all records created by one booking request."""
        return self.get_queryset().for_group(booking_group_id)

    def for_user(self, user_id):
        """Get bookings made with a given user id in their details."""
        return self.get_queryset().for_user(user_id)
