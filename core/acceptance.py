"""
Offer acceptance.

Turning a pending offer into a deal is the only way a Deal row is ever
created. The offer and its lot are locked for the whole operation so two
concurrent acceptances can never both pass the status checks.
"""

import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .details import get_deal_details
from .exceptions import DealUnauthorized, NotFound, OfferUnavailable, RequestClosed
from .models import (
    Deal,
    DealMilestone,
    DealStatus,
    MILESTONE_SEQUENCE,
    MilestoneLabel,
    Offer,
    OfferStatus,
    Request,
    RequestStatus,
)

logger = logging.getLogger(__name__)


ACCEPTED_MESSAGE = 'Offer accepted. Waiting for shipment.'


def accept_offer(offer_id, acting_user_id=None):
    """
    Accept an offer and open a deal for it.

    Within one transaction:
    1. Lock the offer, then its lot
    2. Check the offer is pending and the lot is open
    3. Create the deal with its four milestones, the first already completed
    4. Move the offer to accepted and the lot to in_progress

    Other pending offers on the same lot are left untouched.

    Args:
        offer_id: Offer to accept
        acting_user_id: When given, must be the lot's buyer

    Returns:
        DealDetails: Composite view of the new deal

    Raises:
        NotFound: Offer (or its lot) does not exist
        OfferUnavailable: Offer is not pending
        RequestClosed: Lot is no longer open
        DealUnauthorized: Acting user is not the lot's buyer
    """
    with transaction.atomic():
        try:
            offer = Offer.objects.select_for_update().get(pk=offer_id)
        except Offer.DoesNotExist:
            raise NotFound('Offer not found.')

        if offer.status != OfferStatus.PENDING:
            raise OfferUnavailable()

        try:
            lot = Request.objects.select_for_update().get(pk=offer.request_id)
        except Request.DoesNotExist:
            raise NotFound('Request not found.')

        if lot.status != RequestStatus.OPEN:
            raise RequestClosed()

        if acting_user_id is not None and lot.buyer_id != acting_user_id:
            raise DealUnauthorized('Only the buyer of this lot can accept offers.')

        now = timezone.now()
        due_hours = getattr(settings, 'LOTBUY_DEAL_DUE_HOURS', 48)

        deal = Deal.objects.create(
            request=lot,
            offer=offer,
            status=DealStatus.AWAITING_SHIPMENT,
            total_amount=offer.price_amount,
            currency_code=offer.currency_code,
            due_at=now + timedelta(hours=due_hours),
            last_message_text=ACCEPTED_MESSAGE,
            last_message_at=now,
        )

        offer.status = OfferStatus.ACCEPTED
        offer.save(update_fields=['status', 'updated_at'])

        lot.status = RequestStatus.IN_PROGRESS
        lot.save(update_fields=['status', 'updated_at'])

        DealMilestone.objects.bulk_create([
            DealMilestone(
                deal=deal,
                label=label,
                position=position,
                completed=(label == MilestoneLabel.OFFER_ACCEPTED),
                completed_at=now if label == MilestoneLabel.OFFER_ACCEPTED else None,
            )
            for label, position in MILESTONE_SEQUENCE
        ])

        logger.info(
            f"Deal {deal.id} opened: offer {offer.id} accepted on request {lot.id} "
            f"by user {acting_user_id}"
        )

    return get_deal_details(deal.id)
