"""
Deal lifecycle state machine.

A deal moves through a fixed path:

    awaiting_shipment -> awaiting_payment -> awaiting_confirmation -> completed

and can be moved to in_dispute by either participant from any of the three
awaiting states. completed and in_dispute are terminal.

Deal.status is the authoritative stage. The milestone rows record when each
step happened and are updated in the same transaction as the status.

Every operation:
1. Opens a transaction and locks the deal row (select_for_update)
2. Works out whether the caller is the buyer or the seller
3. Validates, mutates, commits
4. Returns the composite view built after the commit

Any error raised inside the transaction rolls back every write.
"""

import logging
from dataclasses import dataclass

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .details import get_deal_details
from .exceptions import (
    DealStateConflict,
    DealUnauthorized,
    MilestoneAlreadyCompleted,
    NotFound,
)
from .models import (
    Deal,
    DealMilestone,
    DealRole,
    DealStatus,
    MilestoneLabel,
    Offer,
    OfferStatus,
    Request,
    RequestStatus,
    User,
)

logger = logging.getLogger(__name__)


DEFAULT_DISPUTE_REASON = 'Dispute opened'


@dataclass(frozen=True)
class Transition:
    """One forward step of the deal: who may take it, from where, to where."""
    milestone: str
    role: str
    source: str
    target: str
    message: str


TRANSITIONS = {
    'mark_shipped': Transition(
        milestone=MilestoneLabel.SHIPMENT,
        role=DealRole.SELLER,
        source=DealStatus.AWAITING_SHIPMENT,
        target=DealStatus.AWAITING_PAYMENT,
        message='Item shipped. Waiting for payment.',
    ),
    'submit_payment': Transition(
        milestone=MilestoneLabel.PAYMENT,
        role=DealRole.BUYER,
        source=DealStatus.AWAITING_PAYMENT,
        target=DealStatus.AWAITING_CONFIRMATION,
        message='Payment submitted. Waiting for confirmation.',
    ),
    'confirm_delivery': Transition(
        milestone=MilestoneLabel.CONFIRMATION,
        role=DealRole.SELLER,
        source=DealStatus.AWAITING_CONFIRMATION,
        target=DealStatus.COMPLETED,
        message='Deal completed.',
    ),
}


def lock_deal(deal_id):
    """
    Lock and return a deal row. Must be called inside transaction.atomic().

    Raises:
        NotFound: If the deal does not exist
    """
    try:
        return Deal.objects.select_for_update().get(pk=deal_id)
    except Deal.DoesNotExist:
        raise NotFound('Deal not found.')


def require_participant(deal, acting_user_id):
    """
    Return the caller's role on the deal.

    Raises:
        DealUnauthorized: If the caller is neither buyer nor seller
    """
    role = deal.role_of(acting_user_id)
    if role is None:
        logger.warning(
            f"User {acting_user_id} is not a participant of deal {deal.id}"
        )
        raise DealUnauthorized()
    return role


def _advance(deal_id, acting_user_id, name):
    step = TRANSITIONS[name]

    with transaction.atomic():
        deal = lock_deal(deal_id)
        role = require_participant(deal, acting_user_id)

        milestone = DealMilestone.objects.filter(deal=deal, label=step.milestone).first()
        if milestone is None:
            raise DealStateConflict(f'Deal has no "{step.milestone}" milestone.')

        if milestone.completed:
            raise MilestoneAlreadyCompleted(f'"{step.milestone}" is already completed.')

        if role != step.role:
            logger.warning(
                f"Rejected {name} on deal {deal.id}: user {acting_user_id} is the {role}, "
                f"only the {step.role} may do this"
            )
            raise DealUnauthorized(f'Only the {step.role} can do this.')

        if deal.status != step.source:
            logger.warning(
                f"Rejected {name} on deal {deal.id}: status is {deal.status}, "
                f"expected {step.source}"
            )
            raise DealStateConflict(
                f'Deal is {deal.status}; this action needs it to be {step.source}.'
            )

        now = timezone.now()

        milestone.completed = True
        milestone.completed_at = now
        milestone.save(update_fields=['completed', 'completed_at', 'updated_at'])

        previous = deal.status
        deal.status = step.target
        deal.last_message_text = step.message
        deal.last_message_at = now
        update_fields = ['status', 'last_message_text', 'last_message_at', 'updated_at']

        if step.target == DealStatus.COMPLETED:
            deal.completed_at = now
            update_fields.append('completed_at')
            _complete_related(deal, now)

        deal.save(update_fields=update_fields)

        logger.info(
            f"Deal {deal.id}: {previous} -> {deal.status} ({name} by user {acting_user_id})"
        )

    return get_deal_details(deal_id)


def _complete_related(deal, now):
    """Close the lot and the offer and credit both participants with a completed deal."""
    Request.objects.filter(pk=deal.request_id).update(
        status=RequestStatus.COMPLETED,
        updated_at=now,
    )
    Offer.objects.filter(pk=deal.offer_id).update(
        status=OfferStatus.COMPLETED,
        updated_at=now,
    )

    participant_ids = {pk for pk in (deal.buyer_id, deal.seller_id) if pk is not None}
    User.objects.filter(pk__in=participant_ids).update(
        completed_deals=F('completed_deals') + 1
    )


def mark_shipped(deal_id, acting_user_id):
    """Seller reports the item shipped. awaiting_shipment -> awaiting_payment."""
    return _advance(deal_id, acting_user_id, 'mark_shipped')


def submit_payment(deal_id, acting_user_id):
    """Buyer reports payment sent. awaiting_payment -> awaiting_confirmation."""
    return _advance(deal_id, acting_user_id, 'submit_payment')


def confirm_delivery(deal_id, acting_user_id):
    """
    Seller confirms the deal is done. awaiting_confirmation -> completed.

    Also completes the lot and the offer and increments completed_deals on
    both participants, all in the same transaction.
    """
    return _advance(deal_id, acting_user_id, 'confirm_delivery')


def open_dispute(deal_id, acting_user_id, reason=None):
    """
    Either participant moves an active deal to in_dispute.

    Args:
        deal_id: Deal to dispute
        acting_user_id: Buyer or seller of the deal
        reason: Free text; blank becomes "Dispute opened"

    Raises:
        NotFound: Deal does not exist
        DealUnauthorized: Caller is not a participant
        DealStateConflict: Deal is already completed or in dispute
    """
    reason = (reason or '').strip() or DEFAULT_DISPUTE_REASON

    with transaction.atomic():
        deal = lock_deal(deal_id)
        require_participant(deal, acting_user_id)

        if not deal.is_active():
            logger.warning(
                f"Rejected dispute on deal {deal.id}: status is already {deal.status}"
            )
            raise DealStateConflict(f'Deal is {deal.status} and cannot be disputed.')

        now = timezone.now()
        previous = deal.status

        deal.status = DealStatus.IN_DISPUTE
        deal.dispute_reason = reason
        deal.dispute_opened_by_id = acting_user_id
        deal.dispute_opened_at = now
        deal.last_message_text = reason
        deal.last_message_at = now
        deal.save(update_fields=[
            'status',
            'dispute_reason',
            'dispute_opened_by',
            'dispute_opened_at',
            'last_message_text',
            'last_message_at',
            'updated_at',
        ])

        Request.objects.filter(pk=deal.request_id).update(
            status=RequestStatus.IN_DISPUTE,
            updated_at=now,
        )

        logger.info(
            f"Deal {deal.id}: {previous} -> {deal.status} (dispute by user {acting_user_id})"
        )

    return get_deal_details(deal_id)
