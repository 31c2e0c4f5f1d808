"""
URL routing for the conference API.
"""

from django.urls import path
from .views import (
    RecommendationView,
    BookingView,
    BookingCalendarView,
    UserBookingsView,
)

urlpatterns = [
    path('recommendations/', RecommendationView.as_view(), name='recommendations'),
    path('book/', BookingView.as_view(), name='book'),
    path('ics/<uuid:booking_id>/', BookingCalendarView.as_view(), name='booking-calendar'),
    path('bookings/<str:user_id>/', UserBookingsView.as_view(), name='user-bookings'),
]
