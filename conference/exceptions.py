"""
Error taxonomy for the scheduling services and its REST rendering.

Services raise these exceptions; the DRF exception handler below turns them
into ``{"error": ...}`` responses. Anything else is left to DRF's default
handler.
"""

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler


class SchedulingError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self) -> dict:
        payload = {'error': self.message}
        payload.update(self.details)
        return payload


class ValidationError(SchedulingError):
    """Request is missing required input; nothing was done."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(SchedulingError):
    """Requested sessions or booking do not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SchedulingError):
    """Selected sessions are full or overlap in time."""

    status_code = status.HTTP_409_CONFLICT


class UpstreamError(SchedulingError):
    """The session store failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def api_exception_handler(exc, context):
    """Render SchedulingError subclasses; defer everything else to DRF."""
    if isinstance(exc, SchedulingError):
        return Response(exc.as_dict(), status=exc.status_code)
    return exception_handler(exc, context)
