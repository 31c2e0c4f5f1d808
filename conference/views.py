"""Views for the conference scheduling API."""

from django.http import HttpResponse
from django.utils import timezone

from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    BookingReadSerializer,
    BookingRequestSerializer,
    BookingResponseSerializer,
    RecommendationRequestSerializer,
    RecommendationResponseSerializer,
)
from . import services
from .types import TimePreference


API_VERSION = '2.0'


class RecommendationView(APIView):
    """
    Recommend an arranged set of sessions for a user profile.

    POST /api/recommendations/
    """

    def post(self, request):
        """Score, arrange and return the top sessions."""
        serializer = RecommendationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        time_pref = None
        if data.get('timePref'):
            time_pref = TimePreference(
                start=data['timePref']['start'],
                end=data['timePref']['end']
            )

        result = services.recommend_sessions(
            industry=data.get('industry', ''),
            focus=data.get('focus', []),
            time_pref=time_pref,
            avoid_gaps=data.get('avoidGaps', True),
            top_k=data.get('topK', 8),
            use_llm=data.get('useLLM', False)
        )

        return Response(RecommendationResponseSerializer(result).data)


class BookingView(APIView):
    """
    Book a set of sessions as one group.

    POST /api/book/
    """

    def post(self, request):
        """Validate selection and create the booking."""
        serializer = BookingRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = services.book_sessions(
            session_ids=serializer.validated_data.get('sessionIds', []),
            user_details=serializer.validated_data.get('userDetails', {})
        )

        return Response(BookingResponseSerializer(result).data)


class BookingCalendarView(APIView):
    """
    Download the calendar file of a booking.

    GET /api/ics/{booking_id}/
    """

    def get(self, request, booking_id):
        """Return the booking's sessions as text/calendar."""
        content = services.export_booking_calendar(booking_id)

        response = HttpResponse(content, content_type='text/calendar; charset=utf-8')
        response['Content-Disposition'] = f'attachment; filename="schedule-{booking_id}.ics"'
        return response


class UserBookingsView(APIView):
    """
    List the bookings of one user.

    GET /api/bookings/{user_id}/
    """

    def get(self, request, user_id):
        """List booking records, newest first."""
        bookings = services.get_bookings_for_user(user_id)
        serializer = BookingReadSerializer(bookings, many=True)
        return Response({'bookings': serializer.data})


class HealthCheckView(APIView):
    """GET /health/"""

    def get(self, request):
        return Response({
            'status': 'healthy',
            'timestamp': timezone.now().isoformat(),
            'version': API_VERSION
        })
