"""
Composite deal view.

Joins a Deal with its Request, Offer and milestones into a single read model.
Every mutating deal operation returns one of these, built after its
transaction has committed, so callers always see the committed state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from django.db.models import Q

from .exceptions import NotFound
from .models import Deal


@dataclass
class ParticipantSummary:
    id: Optional[int]
    name: str
    avatar_url: str
    rating: Optional[Decimal]


@dataclass
class OfferSummary:
    id: int
    price_amount: Decimal
    currency_code: str
    message: str
    status: str


@dataclass
class MilestoneSummary:
    label: str
    position: int
    completed: bool
    completed_at: Optional[datetime]


@dataclass
class DealDetails:
    id: int
    status: str
    request_id: int
    request_title: str
    request_status: str
    total_amount: Decimal
    currency_code: str
    due_at: Optional[datetime]
    last_message_text: str
    last_message_at: Optional[datetime]
    dispute_reason: str
    dispute_opened_by_id: Optional[int]
    dispute_opened_at: Optional[datetime]
    completed_at: Optional[datetime]
    buyer_rating: Optional[int]
    seller_rating: Optional[int]
    created_at: datetime
    updated_at: datetime
    buyer: ParticipantSummary
    seller: ParticipantSummary
    offer: OfferSummary
    milestones: List[MilestoneSummary] = field(default_factory=list)

    def role_of(self, user_id):
        """Return 'buyer', 'seller' or None for the given user id."""
        if user_id is not None and self.buyer.id == user_id:
            return 'buyer'
        if user_id is not None and self.seller.id == user_id:
            return 'seller'
        return None


def _participant(account, name, avatar_url, snapshot_rating):
    # Live aggregate when the account still exists, else the listing snapshot
    if account is None:
        return ParticipantSummary(
            id=None,
            name=name,
            avatar_url=avatar_url,
            rating=snapshot_rating,
        )
    return ParticipantSummary(
        id=account.id,
        name=name or account.display_name,
        avatar_url=avatar_url or account.avatar_url,
        rating=account.rating if account.rating_count else snapshot_rating,
    )


def build_deal_details(deal):
    """
    Assemble the composite view from an already-loaded Deal.

    The deal should come from ``_deal_queryset()`` so the request, offer,
    both accounts and the milestones are loaded without extra queries.
    """
    lot = deal.request
    offer = deal.offer

    milestones = sorted(deal.milestones.all(), key=lambda m: m.position)

    return DealDetails(
        id=deal.id,
        status=deal.status,
        request_id=lot.id,
        request_title=lot.title,
        request_status=lot.status,
        total_amount=deal.total_amount,
        currency_code=deal.currency_code,
        due_at=deal.due_at,
        last_message_text=deal.last_message_text,
        last_message_at=deal.last_message_at,
        dispute_reason=deal.dispute_reason,
        dispute_opened_by_id=deal.dispute_opened_by_id,
        dispute_opened_at=deal.dispute_opened_at,
        completed_at=deal.completed_at,
        buyer_rating=deal.buyer_rating,
        seller_rating=deal.seller_rating,
        created_at=deal.created_at,
        updated_at=deal.updated_at,
        buyer=_participant(lot.buyer, lot.buyer_name, lot.buyer_avatar_url, lot.buyer_rating),
        seller=_participant(offer.seller, offer.seller_name, offer.seller_avatar_url, offer.seller_rating),
        offer=OfferSummary(
            id=offer.id,
            price_amount=offer.price_amount,
            currency_code=offer.currency_code,
            message=offer.message,
            status=offer.status,
        ),
        milestones=[
            MilestoneSummary(
                label=m.label,
                position=m.position,
                completed=m.completed,
                completed_at=m.completed_at,
            )
            for m in milestones
        ],
    )


def _deal_queryset():
    return Deal.objects.select_related(
        'request',
        'request__buyer',
        'offer',
        'offer__seller',
    ).prefetch_related('milestones')


def get_deal_details(deal_id):
    """
    Load the composite view for one deal.

    Raises:
        NotFound: If no deal has this id
    """
    try:
        deal = _deal_queryset().get(pk=deal_id)
    except Deal.DoesNotExist:
        raise NotFound('Deal not found.')

    return build_deal_details(deal)


def list_deals_for_user(user_id):
    """Composite views for every deal the user is buyer or seller on, newest first."""
    deals = _deal_queryset().filter(
        Q(request__buyer_id=user_id) | Q(offer__seller_id=user_id)
    ).order_by('-created_at', '-id')

    return [build_deal_details(deal) for deal in deals]
