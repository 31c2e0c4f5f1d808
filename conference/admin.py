"""
Admin configuration for the conference app.
"""

from django.contrib import admin
from .models import Booking, ConferenceSession


@admin.register(ConferenceSession)
class ConferenceSessionAdmin(admin.ModelAdmin):
    """Admin interface for ConferenceSession model."""

    list_display = ['title', 'category', 'date', 'time', 'duration', 'enrolled', 'capacity']
    list_filter = ['category', 'date', 'created_at']
    search_fields = ['title', 'description', 'instructor']
    date_hierarchy = 'date'

    fieldsets = (
        ('Basic Information', {
            'fields': ('title', 'description', 'instructor', 'location')
        }),
        ('Classification', {
            'fields': ('category', 'subcategory', 'tags')
        }),
        ('Schedule', {
            'fields': ('date', 'time', 'duration')
        }),
        ('Seats', {
            'fields': ('capacity', 'enrolled')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at', 'updated_at']


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Admin interface for Booking model."""

    list_display = ['booking_group_id', 'session', 'status', 'booked_at']
    list_filter = ['status', 'booked_at']
    search_fields = ['booking_group_id', 'session__title']
    date_hierarchy = 'booked_at'

    readonly_fields = ['id', 'booking_group_id', 'session', 'user_details', 'status', 'booked_at']
