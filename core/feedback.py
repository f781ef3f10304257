"""
Post-deal feedback and rating aggregation.

Each participant may rate the other once per completed deal. Submitting
again replaces the earlier rating; the reviewee's running aggregates are
adjusted by the difference so rating_count only counts distinct reviewers.
"""

import logging

from django.db import transaction
from django.db.models import F

from .details import get_deal_details
from .exceptions import DealStateConflict, IncompleteDeal, InvalidRating
from .lifecycle import lock_deal, require_participant
from .models import DealFeedback, DealRole, DealStatus, User

logger = logging.getLogger(__name__)


MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating):
    """
    Raises:
        InvalidRating: Unless rating is an int between 1 and 5
    """
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRating()
    if rating < MIN_RATING or rating > MAX_RATING:
        raise InvalidRating()


def add_feedback(deal_id, reviewer_id, rating, comment=None):
    """
    Record (or replace) the reviewer's rating of the other participant.

    Check order: rating range (before any locking), deal exists, reviewer
    is a participant, deal has both participants, deal is completed.

    Under the deal lock and the reviewee's user lock:
    - new feedback: rating_total += rating, rating_count += 1
    - replaced feedback: rating_total += rating - previous rating
    - the rating is also stored on the deal, as buyer_rating when the buyer
      gave it and seller_rating when the seller gave it

    Returns:
        DealDetails: Composite view after commit

    Raises:
        InvalidRating, NotFound, DealUnauthorized, IncompleteDeal,
        DealStateConflict
    """
    validate_rating(rating)
    comment = (comment or '').strip()

    with transaction.atomic():
        deal = lock_deal(deal_id)
        role = require_participant(deal, reviewer_id)

        buyer_id = deal.buyer_id
        seller_id = deal.seller_id
        if buyer_id is None or seller_id is None:
            raise IncompleteDeal()

        if deal.status != DealStatus.COMPLETED:
            raise DealStateConflict('Feedback can only be left on completed deals.')

        reviewee_id = seller_id if role == DealRole.BUYER else buyer_id

        # Lock the reviewee before touching their aggregates
        User.objects.select_for_update().get(pk=reviewee_id)

        existing = DealFeedback.objects.select_for_update().filter(
            deal=deal,
            reviewer_id=reviewer_id
        ).first()

        if existing is not None:
            delta = rating - existing.rating
            existing.rating = rating
            existing.comment = comment
            existing.reviewee_id = reviewee_id
            existing.save(update_fields=['rating', 'comment', 'reviewee', 'updated_at'])
            if delta:
                User.objects.filter(pk=reviewee_id).update(
                    rating_total=F('rating_total') + delta
                )
            action = 'updated'
        else:
            DealFeedback.objects.create(
                deal=deal,
                reviewer_id=reviewer_id,
                reviewee_id=reviewee_id,
                rating=rating,
                comment=comment,
            )
            User.objects.filter(pk=reviewee_id).update(
                rating_total=F('rating_total') + rating,
                rating_count=F('rating_count') + 1
            )
            action = 'created'

        if role == DealRole.BUYER:
            deal.buyer_rating = rating
            deal.save(update_fields=['buyer_rating', 'updated_at'])
        else:
            deal.seller_rating = rating
            deal.save(update_fields=['seller_rating', 'updated_at'])

        logger.info(
            f"Feedback {action} on deal {deal.id}: {role} {reviewer_id} rated "
            f"user {reviewee_id} {rating}"
        )

    return get_deal_details(deal_id)
