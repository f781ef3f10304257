"""
Smoke tests for the admin site.
"""

import pytest
from django.urls import reverse


@pytest.mark.django_db
class TestAdminPages:

    @pytest.mark.parametrize('model', [
        'user', 'request', 'offer', 'deal', 'dealfeedback', 'offermessage', 'notification',
    ])
    def test_changelist_renders(self, admin_client, completed_deal, model):
        response = admin_client.get(reverse(f'admin:core_{model}_changelist'))

        assert response.status_code == 200

    def test_deal_change_page_renders(self, admin_client, deal):
        response = admin_client.get(reverse('admin:core_deal_change', args=[deal.id]))

        assert response.status_code == 200
        assert b'Shipment' in response.content

    def test_deals_cannot_be_added(self, admin_client):
        response = admin_client.get(reverse('admin:core_deal_add'))

        assert response.status_code == 403
