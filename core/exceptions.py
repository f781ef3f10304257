"""
Typed errors raised by the marketplace core.

Each error is a DRF APIException so that views can let it propagate and DRF
renders it with its own status code. All of them are raised from inside
transaction.atomic() blocks (or before one opens), so the surrounding
transaction is always rolled back when one escapes.

Database failures (django.db.DatabaseError, lock wait timeouts) are not part
of this taxonomy. They are reported by the API layer as transient failures.
"""

import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class MarketplaceError(APIException):
    """Base class for every recoverable marketplace error."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The operation could not be completed.'
    default_code = 'marketplace_error'


class OfferUnavailable(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Offer is not available.'
    default_code = 'offer_unavailable'


class RequestClosed(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Request is not accepting new deals.'
    default_code = 'request_closed'


class DealUnauthorized(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not allowed to perform this action on the deal.'
    default_code = 'deal_unauthorized'


class MilestoneAlreadyCompleted(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This milestone has already been completed.'
    default_code = 'milestone_already_completed'


class DealStateConflict(MarketplaceError):
    """The deal is not in the status the requested transition starts from."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The deal is not in a state that allows this action.'
    default_code = 'deal_state_conflict'


class InvalidRating(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Rating must be an integer between 1 and 5.'
    default_code = 'invalid_rating'


class IncompleteDeal(MarketplaceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'The deal is missing a buyer or seller.'
    default_code = 'incomplete_deal'


class NotFound(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class ValidationFailed(MarketplaceError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid input.'
    default_code = 'validation_failed'


def marketplace_exception_handler(exc, context):
    """
    DRF exception handler adding a machine-readable ``code`` to error bodies.

    Serializer field errors get ``validation_failed`` next to the field keys.

    Marketplace errors and DRF errors keep DRF's rendering. Database failures
    that reach the view layer are reported as a retryable 503.
    """
    response = exception_handler(exc, context)

    if response is not None:
        if isinstance(exc, APIException) and isinstance(response.data, dict) and 'detail' in response.data:
            codes = exc.get_codes()
            response.data['code'] = codes if isinstance(codes, str) else exc.default_code
        elif isinstance(exc, ValidationError) and isinstance(response.data, dict) and 'code' not in response.data:
            # Field errors keep their per-field messages
            response.data['code'] = ValidationFailed.default_code
        return response

    if isinstance(exc, DatabaseError):
        view = context.get('view')
        logger.error(
            f"Database failure in {view.__class__.__name__ if view else 'unknown view'}: {exc}",
            exc_info=True
        )
        return Response(
            {
                'detail': 'The service is temporarily unavailable. Please retry.',
                'code': 'transient_failure',
            },
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
            headers={'Retry-After': '1'}
        )

    return None
