"""Core app views.

Contains:
- health: Health check endpoint
- practice_error_response: maps service exceptions to DRF responses
"""

import logging

from django.db import connection
from django.http import JsonResponse

from rest_framework import status
from rest_framework.response import Response

from surgiplan.core.exceptions import (
    AvailabilityConflictError,
    ConsistencyError,
    DependencyNotMetError,
    ExternalServiceError,
    InvalidSchedulingData,
    NotFound,
    PracticeError,
    SurgeryNotReadyError,
)

logger = logging.getLogger(__name__)


def health(request):
    """Health check endpoint - no authentication required."""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1;')
    except Exception as exc:
        return JsonResponse({'status': 'error', 'detail': str(exc)}, status=503)

    return JsonResponse({'status': 'ok'})


def practice_error_response(exc: PracticeError) -> Response:
    """Translate a service exception into a response.

    "Time unavailable" (409) stays distinguishable from "system error"
    (5xx) so clients only offer alternative slots in the former case.
    """
    if isinstance(exc, NotFound):
        return Response(exc.to_dict(), status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, InvalidSchedulingData):
        return Response(exc.to_dict(), status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, (AvailabilityConflictError, DependencyNotMetError, SurgeryNotReadyError)):
        return Response(exc.to_dict(), status=status.HTTP_409_CONFLICT)
    if isinstance(exc, ExternalServiceError):
        return Response(exc.to_dict(), status=status.HTTP_503_SERVICE_UNAVAILABLE)
    if isinstance(exc, ConsistencyError):
        return Response({'detail': 'internal consistency error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.error('Unmapped practice error: %s', exc)
    return Response({'detail': str(exc)}, status=status.HTTP_400_BAD_REQUEST)
