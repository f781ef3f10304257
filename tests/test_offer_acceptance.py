"""
Tests for turning a pending offer into a deal.

Covers:
- Deal creation with the four milestones
- Offer / lot status cascade
- Rejections (offer not pending, lot closed, wrong actor, unknown offer)
- Rollback: a rejected or failed acceptance changes nothing
"""

from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.db import DatabaseError
from django.utils import timezone

from core.acceptance import ACCEPTED_MESSAGE, accept_offer
from core.exceptions import DealUnauthorized, NotFound, OfferUnavailable, RequestClosed
from core.models import (
    Deal,
    DealMilestone,
    DealStatus,
    MilestoneLabel,
    OfferStatus,
    RequestStatus,
)


@pytest.mark.django_db
class TestAcceptOffer:

    def test_accept_creates_deal_awaiting_shipment(self, offer, buyer):
        details = accept_offer(offer.id, acting_user_id=buyer.id)

        deal = Deal.objects.get(pk=details.id)
        assert deal.offer_id == offer.id
        assert deal.request_id == offer.request_id
        assert deal.status == DealStatus.AWAITING_SHIPMENT
        assert deal.total_amount == Decimal('100.00')
        assert deal.currency_code == 'USD'
        assert deal.last_message_text == ACCEPTED_MESSAGE
        assert deal.last_message_at is not None

    def test_accept_sets_due_date_48_hours_out(self, offer, buyer):
        before = timezone.now()
        details = accept_offer(offer.id, acting_user_id=buyer.id)
        after = timezone.now()

        assert before + timedelta(hours=48) <= details.due_at <= after + timedelta(hours=48)

    def test_due_window_is_configurable(self, offer, buyer, settings):
        settings.LOTBUY_DEAL_DUE_HOURS = 24
        details = accept_offer(offer.id, acting_user_id=buyer.id)

        assert details.due_at - details.last_message_at == timedelta(hours=24)

    def test_accept_seeds_four_milestones_in_order(self, offer, buyer):
        details = accept_offer(offer.id, acting_user_id=buyer.id)

        milestones = list(DealMilestone.objects.filter(deal_id=details.id).order_by('position'))
        assert [(m.position, m.label) for m in milestones] == [
            (1, MilestoneLabel.OFFER_ACCEPTED),
            (2, MilestoneLabel.SHIPMENT),
            (3, MilestoneLabel.PAYMENT),
            (4, MilestoneLabel.CONFIRMATION),
        ]
        assert milestones[0].completed is True
        assert milestones[0].completed_at == details.last_message_at
        assert all(not m.completed and m.completed_at is None for m in milestones[1:])

    def test_accept_moves_offer_and_lot_forward(self, offer, lot, buyer):
        accept_offer(offer.id, acting_user_id=buyer.id)

        offer.refresh_from_db()
        lot.refresh_from_db()
        assert offer.status == OfferStatus.ACCEPTED
        assert lot.status == RequestStatus.IN_PROGRESS

    def test_accept_returns_composite_view(self, offer, buyer, seller):
        details = accept_offer(offer.id, acting_user_id=buyer.id)

        assert details.buyer.id == buyer.id
        assert details.buyer.name == 'Bea Buyer'
        assert details.seller.id == seller.id
        assert details.seller.name == 'Sam Seller'
        assert details.offer.id == offer.id
        assert details.offer.status == OfferStatus.ACCEPTED
        assert details.request_status == RequestStatus.IN_PROGRESS
        assert len(details.milestones) == 4

    def test_accept_without_actor_is_allowed(self, offer):
        details = accept_offer(offer.id)
        assert details.status == DealStatus.AWAITING_SHIPMENT

    def test_second_accept_of_same_offer_is_unavailable(self, offer, buyer):
        accept_offer(offer.id, acting_user_id=buyer.id)

        with pytest.raises(OfferUnavailable):
            accept_offer(offer.id, acting_user_id=buyer.id)

        assert Deal.objects.filter(offer=offer).count() == 1

    def test_sibling_offer_after_acceptance_hits_closed_request(self, offer, lot, buyer, make_offer, make_user):
        other_seller = make_user('seller2@test.com', 'Second Seller')
        sibling = make_offer(lot, by=other_seller, price='95.00')

        accept_offer(offer.id, acting_user_id=buyer.id)

        with pytest.raises(RequestClosed):
            accept_offer(sibling.id, acting_user_id=buyer.id)

        sibling.refresh_from_db()
        assert sibling.status == OfferStatus.PENDING
        assert Deal.objects.count() == 1

    def test_non_buyer_cannot_accept(self, offer, lot, seller, outsider):
        for actor in (seller, outsider):
            with pytest.raises(DealUnauthorized):
                accept_offer(offer.id, acting_user_id=actor.id)

        offer.refresh_from_db()
        lot.refresh_from_db()
        assert offer.status == OfferStatus.PENDING
        assert lot.status == RequestStatus.OPEN
        assert not Deal.objects.exists()
        assert not DealMilestone.objects.exists()

    def test_unknown_offer_is_not_found(self, buyer):
        with pytest.raises(NotFound):
            accept_offer(999999, acting_user_id=buyer.id)

    def test_offer_on_closed_lot_is_rejected(self, offer, lot, buyer):
        lot.status = RequestStatus.COMPLETED
        lot.save(update_fields=['status'])

        with pytest.raises(RequestClosed):
            accept_offer(offer.id, acting_user_id=buyer.id)

        offer.refresh_from_db()
        assert offer.status == OfferStatus.PENDING

    def test_offer_status_checked_before_lot_status(self, offer, lot, buyer):
        offer.status = OfferStatus.COMPLETED
        offer.save(update_fields=['status'])
        lot.status = RequestStatus.COMPLETED
        lot.save(update_fields=['status'])

        with pytest.raises(OfferUnavailable):
            accept_offer(offer.id, acting_user_id=buyer.id)


@pytest.mark.django_db
class TestAcceptRollback:

    def test_failed_milestone_insert_leaves_nothing_behind(self, offer, lot, buyer):
        with mock.patch.object(
            DealMilestone.objects, 'bulk_create', side_effect=DatabaseError('disk full')
        ):
            with pytest.raises(DatabaseError):
                accept_offer(offer.id, acting_user_id=buyer.id)

        assert not Deal.objects.exists()
        assert not DealMilestone.objects.exists()
        offer.refresh_from_db()
        lot.refresh_from_db()
        assert offer.status == OfferStatus.PENDING
        assert lot.status == RequestStatus.OPEN

    def test_offer_can_be_accepted_after_failed_attempt(self, offer, buyer):
        with mock.patch.object(
            DealMilestone.objects, 'bulk_create', side_effect=DatabaseError('disk full')
        ):
            with pytest.raises(DatabaseError):
                accept_offer(offer.id, acting_user_id=buyer.id)

        details = accept_offer(offer.id, acting_user_id=buyer.id)

        assert details.status == DealStatus.AWAITING_SHIPMENT
        assert DealMilestone.objects.filter(deal_id=details.id).count() == 4
