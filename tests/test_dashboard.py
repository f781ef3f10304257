"""
Dashboard counters and the dashboard endpoint.
"""

from datetime import timedelta

import pytest
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from core.dashboard import get_user_stats, pending_offers_for_buyer
from core.lifecycle import open_dispute
from core.models import Notification, OfferMessage, RequestStatus


@pytest.mark.django_db
class TestUserStats:

    def test_empty_account(self, outsider):
        assert get_user_stats(outsider.id) == {
            'active_lots': 0,
            'pending_offers': 0,
            'active_deals': 0,
            'completed_deals': 0,
            'offers_made': 0,
            'unread_notifications': 0,
            'incoming_messages': 0,
        }

    def test_buyer_with_pending_offer(self, offer, buyer, seller):
        stats = get_user_stats(buyer.id)

        assert stats['active_lots'] == 1
        assert stats['pending_offers'] == 1
        assert stats['unread_notifications'] == 1
        assert get_user_stats(seller.id)['offers_made'] == 1

    def test_deal_counters_follow_lifecycle(self, deal, completed_deal, buyer):
        stats = get_user_stats(buyer.id)

        assert stats['active_deals'] == 0
        assert stats['completed_deals'] == 1
        assert stats['active_lots'] == 0

    def test_disputed_deal_is_not_active(self, deal, buyer):
        assert get_user_stats(buyer.id)['active_deals'] == 1
        open_dispute(deal.id, buyer.id)
        assert get_user_stats(buyer.id)['active_deals'] == 0

    def test_closed_lots_are_not_active(self, make_lot, buyer):
        make_lot(status=RequestStatus.COMPLETED)
        make_lot(status=RequestStatus.IN_PROGRESS)

        assert get_user_stats(buyer.id)['active_lots'] == 1

    def test_incoming_messages_excludes_own_and_old(self, offer, buyer, seller):
        OfferMessage.objects.create(offer=offer, sender=seller, body='Recent')
        OfferMessage.objects.create(offer=offer, sender=buyer, body='Mine')
        old = OfferMessage.objects.create(offer=offer, sender=seller, body='Old')
        OfferMessage.objects.filter(pk=old.pk).update(created_at=timezone.now() - timedelta(days=8))

        assert get_user_stats(buyer.id)['incoming_messages'] == 1
        assert get_user_stats(seller.id)['incoming_messages'] == 1

    def test_pending_offers_for_buyer_respects_limit(self, lot, make_offer, make_user, buyer):
        for i in range(3):
            make_offer(lot, by=make_user(f'seller{i}@test.com', f'Seller {i}'))

        assert len(pending_offers_for_buyer(buyer.id, limit=2)) == 2


@pytest.mark.django_db
class TestDashboardApi:

    def test_dashboard_payload(self, auth_client, offer, buyer, lot):
        response = auth_client(buyer).get(reverse('dashboard'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['user']['id'] == buyer.id
        assert response.data['stats']['pending_offers'] == 1
        assert [item['id'] for item in response.data['active_lots']] == [lot.id]
        assert response.data['pending_offers'][0]['id'] == offer.id
        assert response.data['pending_offers'][0]['request_title'] == 'Vintage road bike'
        assert len(response.data['notifications']) == Notification.objects.filter(user=buyer).count()

    def test_dashboard_requires_authentication(self, api_client):
        assert api_client.get(reverse('dashboard')).status_code == status.HTTP_401_UNAUTHORIZED
