"""
Dashboard counters for the signed-in user.
"""

from datetime import timedelta

from django.db.models import Q
from django.utils import timezone

from .models import (
    Deal,
    DealStatus,
    Notification,
    Offer,
    OfferMessage,
    OfferStatus,
    Request,
    RequestStatus,
)


INCOMING_MESSAGE_WINDOW = timedelta(days=7)


def get_user_stats(user_id):
    """
    Count what needs the user's attention.

    Lot and deal counters are from the buyer's side; offers_made is from the
    seller's side. incoming_messages counts messages from the other party in
    the last seven days.

    Returns:
        dict: Counter name -> int
    """
    buyer_deals = Deal.objects.filter(request__buyer_id=user_id)

    return {
        'active_lots': Request.objects.filter(
            buyer_id=user_id,
            status__in=[RequestStatus.OPEN, RequestStatus.IN_PROGRESS]
        ).count(),
        'pending_offers': Offer.objects.filter(
            request__buyer_id=user_id,
            status=OfferStatus.PENDING
        ).count(),
        'active_deals': buyer_deals.filter(status__in=DealStatus.active()).count(),
        'completed_deals': buyer_deals.filter(status=DealStatus.COMPLETED).count(),
        'offers_made': Offer.objects.filter(seller_id=user_id).count(),
        'unread_notifications': Notification.objects.filter(
            user_id=user_id,
            is_read=False
        ).count(),
        'incoming_messages': OfferMessage.objects.filter(
            Q(offer__seller_id=user_id) | Q(offer__request__buyer_id=user_id),
            created_at__gte=timezone.now() - INCOMING_MESSAGE_WINDOW
        ).exclude(sender_id=user_id).count(),
    }


def pending_offers_for_buyer(user_id, limit=10):
    """Most recent pending offers on the buyer's lots."""
    return list(
        Offer.objects.filter(
            request__buyer_id=user_id,
            status=OfferStatus.PENDING
        ).select_related('request').order_by('-created_at')[:limit]
    )
