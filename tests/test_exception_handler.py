"""
Tests for the API exception handler and the health endpoint.
"""

from unittest import mock

import pytest
from django.db import OperationalError
from django.urls import reverse
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIRequestFactory

from core.exceptions import (
    DealStateConflict,
    IncompleteDeal,
    InvalidRating,
    MilestoneAlreadyCompleted,
    NotFound,
    OfferUnavailable,
    RequestClosed,
    DealUnauthorized,
    ValidationFailed,
    marketplace_exception_handler,
)


@pytest.mark.parametrize('exc_class, status_code, code', [
    (NotFound, 404, 'not_found'),
    (OfferUnavailable, 409, 'offer_unavailable'),
    (RequestClosed, 409, 'request_closed'),
    (DealUnauthorized, 403, 'deal_unauthorized'),
    (MilestoneAlreadyCompleted, 409, 'milestone_already_completed'),
    (DealStateConflict, 409, 'deal_state_conflict'),
    (InvalidRating, 400, 'invalid_rating'),
    (IncompleteDeal, 422, 'incomplete_deal'),
    (ValidationFailed, 400, 'validation_failed'),
])
def test_marketplace_errors_carry_status_and_code(exc_class, status_code, code):
    response = marketplace_exception_handler(exc_class(), {})

    assert response.status_code == status_code
    assert response.data['code'] == code
    assert response.data['detail'] == exc_class.default_detail


def test_custom_detail_keeps_code():
    response = marketplace_exception_handler(NotFound('Deal not found.'), {})

    assert response.data == {'detail': 'Deal not found.', 'code': 'not_found'}


def test_field_errors_keep_fields_and_get_a_code():
    response = marketplace_exception_handler(ValidationError({'title': ['Required.']}), {})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.data == {'title': ['Required.'], 'code': 'validation_failed'}


def test_list_validation_errors_are_left_alone():
    response = marketplace_exception_handler(ValidationError(['Bad payload.']), {})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.data == ['Bad payload.']


def test_database_failure_is_transient():
    response = marketplace_exception_handler(OperationalError('lock wait timeout'), {'view': None})

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.data['code'] == 'transient_failure'
    assert response['Retry-After'] == '1'


def test_other_exceptions_are_not_handled():
    assert marketplace_exception_handler(RuntimeError('boom'), {}) is None


@pytest.mark.django_db
def test_lock_timeout_in_view_returns_503(auth_client, deal, seller):
    with mock.patch('core.views.mark_shipped', side_effect=OperationalError('lock wait timeout')):
        response = auth_client(seller).post(reverse('deal_ship', args=[deal.id]))

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.data['code'] == 'transient_failure'


def test_health_is_public():
    from core.views import HealthView

    request = APIRequestFactory().get('/api/health/')
    response = HealthView.as_view()(request)

    assert response.status_code == status.HTTP_200_OK
    assert response.data == {'status': 'ok'}
