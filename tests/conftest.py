"""
Shared fixtures for marketplace tests.

The standard cast is one buyer who posts a lot, one seller who offers on it,
and an outsider who takes part in nothing.
"""

from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from core.acceptance import accept_offer
from core.lifecycle import confirm_delivery, mark_shipped, submit_payment
from core.models import Offer, Request

User = get_user_model()


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def auth_client():
    """Factory returning an APIClient carrying a bearer token for a user."""
    def _client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return client
    return _client


@pytest.fixture
def make_user(db):
    def _make(email, full_name='', **extra):
        return User.objects.create_user(
            username=email,
            email=email,
            password='TestPass123!',
            full_name=full_name,
            **extra
        )
    return _make


@pytest.fixture
def buyer(make_user):
    return make_user('buyer@test.com', 'Bea Buyer', role='buyer')


@pytest.fixture
def seller(make_user):
    return make_user('seller@test.com', 'Sam Seller', role='seller')


@pytest.fixture
def outsider(make_user):
    return make_user('outsider@test.com', 'Olly Outsider')


@pytest.fixture
def make_lot(buyer):
    def _make(owner=None, **extra):
        owner = owner or buyer
        fields = {
            'title': 'Vintage road bike',
            'description': 'Steel frame, 56cm, any condition considered.',
            'budget_amount': Decimal('120.00'),
            'currency_code': 'USD',
        }
        fields.update(extra)
        return Request.objects.create(
            buyer=owner,
            buyer_name=owner.display_name,
            buyer_avatar_url=owner.avatar_url,
            buyer_rating=owner.rating,
            **fields
        )
    return _make


@pytest.fixture
def lot(make_lot):
    return make_lot()


@pytest.fixture
def make_offer(seller):
    def _make(lot, by=None, price='100.00', **extra):
        by = by or seller
        return Offer.objects.create(
            request=lot,
            seller=by,
            seller_name=by.display_name,
            seller_avatar_url=by.avatar_url,
            seller_rating=by.rating,
            price_amount=Decimal(price),
            currency_code=extra.pop('currency_code', lot.currency_code),
            message=extra.pop('message', 'Can ship tomorrow.'),
            **extra
        )
    return _make


@pytest.fixture
def offer(make_offer, lot):
    return make_offer(lot)


@pytest.fixture
def deal(offer, buyer):
    """Freshly accepted deal (DealDetails), awaiting shipment."""
    return accept_offer(offer.id, acting_user_id=buyer.id)


@pytest.fixture
def completed_deal(deal, buyer, seller):
    """Deal walked through shipment, payment and confirmation."""
    mark_shipped(deal.id, seller.id)
    submit_payment(deal.id, buyer.id)
    return confirm_delivery(deal.id, seller.id)
