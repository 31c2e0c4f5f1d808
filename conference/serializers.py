"""
Serializers for the conference scheduling API.

Request and response field names follow the public camelCase contract.
"""

from rest_framework import serializers

from .models import Booking, ConferenceSession
from .types import BOOKING_STATUS_CONFIRMED, DEFAULT_TOP_K


class TimePreferenceSerializer(serializers.Serializer):
    """Serializer for the preferred time window."""

    start = serializers.DateTimeField()
    end = serializers.DateTimeField()

    def validate(self, data):
        """Ensure start is before end."""
        if data['start'] >= data['end']:
            raise serializers.ValidationError(
                "Start datetime must be before end datetime."
            )
        return data


class RecommendationRequestSerializer(serializers.Serializer):
    """Serializer for recommendation requests (input)."""

    # Presence of industry is enforced by the service so the error shape matches booking errors
    industry = serializers.CharField(required=False, allow_blank=True, default='')
    focus = serializers.ListField(
        child=serializers.CharField(allow_blank=True),
        required=False,
        default=list
    )
    timePref = TimePreferenceSerializer(required=False, allow_null=True, default=None)
    avoidGaps = serializers.BooleanField(required=False, default=True)
    topK = serializers.IntegerField(min_value=1, max_value=50, required=False, default=DEFAULT_TOP_K)
    useLLM = serializers.BooleanField(required=False, default=False)


class RecommendedSessionSerializer(serializers.Serializer):
    """Serializer for one recommended session (output of ScoredSession)."""

    id = serializers.IntegerField()
    title = serializers.CharField(source='session.title')
    description = serializers.CharField(source='session.description')
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    room = serializers.CharField(source='session.location')
    instructor = serializers.CharField(source='session.instructor')
    score = serializers.FloatField()
    tags = serializers.ListField(source='session.tags', child=serializers.CharField())


class RecommendationResponseSerializer(serializers.Serializer):
    """Serializer for RecommendationResult (output)."""

    requestId = serializers.UUIDField(source='request_id')
    category = serializers.CharField()
    items = RecommendedSessionSerializer(many=True)
    metadata = serializers.SerializerMethodField()

    def get_metadata(self, result):
        metadata = {
            'total_analyzed': result.total_analyzed,
            'top_candidates': result.top_candidates,
            'final_count': result.final_count,
            'category_used': result.category,
            'llm_optimized': result.llm_optimized,
        }
        if result.message:
            metadata['message'] = result.message
        return metadata


class BookingRequestSerializer(serializers.Serializer):
    """Serializer for booking requests (input)."""

    sessionIds = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
        default=list
    )
    userDetails = serializers.DictField(required=False, default=dict)


class SessionSummarySerializer(serializers.ModelSerializer):
    """Short session representation used in booking responses."""

    start = serializers.DateTimeField(source='start_datetime')
    end = serializers.DateTimeField(source='end_datetime')

    class Meta:
        model = ConferenceSession
        fields = ['id', 'title', 'start', 'end']


class BookingResponseSerializer(serializers.Serializer):
    """Serializer for BookingResult (output)."""

    bookingId = serializers.UUIDField(source='booking_id')
    sessionIds = serializers.ListField(source='session_ids', child=serializers.IntegerField())
    status = serializers.SerializerMethodField()
    icsUrl = serializers.SerializerMethodField()
    sessions = SessionSummarySerializer(many=True)
    missingSessionIds = serializers.ListField(source='missing_session_ids', child=serializers.IntegerField())

    def get_status(self, result):
        return BOOKING_STATUS_CONFIRMED

    def get_icsUrl(self, result):
        return f"/api/ics/{result.booking_id}/"


class ConferenceSessionReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying ConferenceSession (output)."""

    start_datetime = serializers.DateTimeField()
    end_datetime = serializers.DateTimeField()

    class Meta:
        model = ConferenceSession
        fields = [
            'id',
            'title',
            'description',
            'category',
            'subcategory',
            'tags',
            'date',
            'time',
            'duration',
            'start_datetime',
            'end_datetime',
            'location',
            'instructor',
            'capacity',
            'enrolled',
        ]


class BookingReadSerializer(serializers.ModelSerializer):
    """Serializer for reading/displaying Booking records (output)."""

    session = ConferenceSessionReadSerializer()

    class Meta:
        model = Booking
        fields = [
            'id',
            'booking_group_id',
            'session',
            'user_details',
            'status',
            'booked_at',
        ]
