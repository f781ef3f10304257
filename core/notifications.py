"""
Best-effort in-app notifications.

A notification is a side effect of some primary operation (an offer posted,
a message sent, an offer accepted). Failing to record one must never fail
that operation, so every write runs inside its own savepoint and database
errors are logged and dropped.
"""

import logging

from django.db import DatabaseError, transaction

from .models import Notification

logger = logging.getLogger(__name__)


OFFER_RECEIVED = 'offer.received'
OFFER_ACCEPTED = 'offer.accepted'
MESSAGE_NEW = 'message.new'


def notify(user_id, type, title, body='', metadata=None):
    """
    Record a notification for a user.

    Args:
        user_id: Recipient primary key; None is ignored
        type: Dotted event name, e.g. ``offer.received``
        title: Short headline
        body: Optional longer text
        metadata: JSON-serialisable dict with ids the client can link to

    Returns:
        Notification | None: The created row, or None if nothing was stored
    """
    if user_id is None:
        return None

    try:
        with transaction.atomic():
            return Notification.objects.create(
                user_id=user_id,
                type=type,
                title=title,
                body=body or '',
                metadata=metadata or {},
            )
    except DatabaseError:
        logger.warning(
            f"Could not store {type} notification for user {user_id}",
            exc_info=True
        )
        return None


def notify_offer_received(offer):
    """Tell the lot's buyer that a seller made an offer."""
    lot = offer.request
    return notify(
        lot.buyer_id,
        OFFER_RECEIVED,
        f"New offer on {lot.title}",
        f"{offer.seller_name} offered {offer.price_amount} {offer.currency_code}.",
        {'request_id': lot.id, 'offer_id': offer.id},
    )


def notify_offer_accepted(details):
    """
    Tell the seller their offer was accepted.

    Args:
        details: core.details.DealDetails of the new deal
    """
    return notify(
        details.seller.id,
        OFFER_ACCEPTED,
        f"Your offer on {details.request_title} was accepted",
        'Ship the item to move the deal forward.',
        {'request_id': details.request_id, 'offer_id': details.offer.id, 'deal_id': details.id},
    )


def notify_new_message(message):
    """Tell the other side of an offer conversation about a new message."""
    offer = message.offer
    buyer_id = offer.request.buyer_id
    recipient_id = offer.seller_id if message.sender_id == buyer_id else buyer_id

    if recipient_id is None or recipient_id == message.sender_id:
        return None

    preview = message.body[:140] if message.body else 'Sent an attachment.'
    return notify(
        recipient_id,
        MESSAGE_NEW,
        'New message',
        preview,
        {
            'request_id': offer.request_id,
            'offer_id': offer.id,
            'message_id': message.id,
        },
    )
