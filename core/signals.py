"""
Django signals for marketplace side effects.

These receivers only produce best-effort side effects (notifications and
the deal's last-message preview). None of them can fail the save that
triggered them.
"""

import logging

from django.db import DatabaseError, transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Deal, Offer, OfferMessage
from .notifications import notify_new_message, notify_offer_received

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Offer)
def notify_buyer_on_offer(sender, instance, created, **kwargs):
    """
    Tell the lot's buyer about a new offer.

    Only fires on creation; status changes (accepted, completed) are saved
    with update_fields and are announced by the deal flow instead.
    """
    if not created or kwargs.get('raw'):
        return

    notify_offer_received(instance)


@receiver(post_save, sender=OfferMessage)
def handle_new_offer_message(sender, instance, created, **kwargs):
    """
    On a new offer message:
    1. Notify the other party
    2. If the offer already has a deal, refresh the deal's last-message preview
    """
    if not created or kwargs.get('raw'):
        return

    notify_new_message(instance)

    preview = instance.body or 'Sent an attachment.'
    try:
        with transaction.atomic():
            updated = Deal.objects.filter(offer_id=instance.offer_id).update(
                last_message_text=preview,
                last_message_at=instance.created_at,
            )
    except DatabaseError:
        logger.warning(
            f"Could not refresh last message for deal on offer {instance.offer_id}",
            exc_info=True
        )
        return

    if updated:
        logger.debug(f"Refreshed last message for deal on offer {instance.offer_id}")
