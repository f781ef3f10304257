"""
Data model for the LotBuy marketplace.

Buyers post purchase requests (lots), sellers answer with offers, and an
accepted offer becomes a deal that moves through a fixed set of milestones.
"""

from decimal import Decimal, ROUND_HALF_UP

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import (
    validate_currency_code,
    validate_external_url,
    validate_positive_amount,
)


# ============================================================================
# Enumerations
# ============================================================================

class RequestStatus(models.TextChoices):
    OPEN = 'open', _('Open')
    IN_PROGRESS = 'in_progress', _('In progress')
    COMPLETED = 'completed', _('Completed')
    IN_DISPUTE = 'in_dispute', _('In dispute')


class OfferStatus(models.TextChoices):
    PENDING = 'pending', _('Pending')
    ACCEPTED = 'accepted', _('Accepted')
    COMPLETED = 'completed', _('Completed')


class DealStatus(models.TextChoices):
    AWAITING_SHIPMENT = 'awaiting_shipment', _('Awaiting shipment')
    AWAITING_PAYMENT = 'awaiting_payment', _('Awaiting payment')
    AWAITING_CONFIRMATION = 'awaiting_confirmation', _('Awaiting confirmation')
    COMPLETED = 'completed', _('Completed')
    IN_DISPUTE = 'in_dispute', _('In dispute')

    @classmethod
    def active(cls):
        """Statuses from which the deal can still move forward or be disputed."""
        return (cls.AWAITING_SHIPMENT, cls.AWAITING_PAYMENT, cls.AWAITING_CONFIRMATION)

    @classmethod
    def terminal(cls):
        return (cls.COMPLETED, cls.IN_DISPUTE)


class MilestoneLabel(models.TextChoices):
    OFFER_ACCEPTED = 'Offer accepted', _('Offer accepted')
    SHIPMENT = 'Shipment', _('Shipment')
    PAYMENT = 'Payment', _('Payment')
    CONFIRMATION = 'Confirmation', _('Confirmation')


# Fixed milestone set seeded for every deal, in display order.
MILESTONE_SEQUENCE = (
    (MilestoneLabel.OFFER_ACCEPTED, 1),
    (MilestoneLabel.SHIPMENT, 2),
    (MilestoneLabel.PAYMENT, 3),
    (MilestoneLabel.CONFIRMATION, 4),
)


class DealRole(models.TextChoices):
    BUYER = 'buyer', _('Buyer')
    SELLER = 'seller', _('Seller')


def average_rating(total, count):
    """
    Derive a public rating from running aggregates.

    Returns:
        Decimal | None: total / count rounded to two places, None when unrated
    """
    if not count:
        return None
    return (Decimal(total) / Decimal(count)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


# ============================================================================
# User Model
# ============================================================================

class User(AbstractUser):
    """
    Marketplace account extending Django's AbstractUser.

    Additional fields:
    - email: Required, unique email address (used to log in)
    - full_name: Display name shown on lots, offers and deals
    - avatar_url: Optional link to a profile picture
    - role: Whether the account mainly buys, sells, or does both
    - completed_deals: Number of deals completed as buyer or seller
    - rating_total / rating_count: Running aggregates of feedback received

    The aggregates are only ever changed by the deal lifecycle and the
    feedback aggregator, inside the transaction of the triggering deal
    operation.
    """

    ROLE_CHOICES = [
        ('buyer', 'Buyer'),
        ('seller', 'Seller'),
        ('both', 'Buyer and seller'),
    ]

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    full_name = models.CharField(
        _('full name'),
        max_length=200,
        blank=True,
        default='',
        help_text=_('Name shown to other marketplace users.')
    )

    avatar_url = models.CharField(
        _('avatar URL'),
        max_length=500,
        blank=True,
        default='',
        validators=[validate_external_url],
        help_text=_('Optional link to a profile picture.')
    )

    role = models.CharField(
        _('role'),
        max_length=10,
        choices=ROLE_CHOICES,
        default='both',
        help_text=_('Whether the account buys, sells, or both.')
    )

    completed_deals = models.PositiveIntegerField(
        _('completed deals'),
        default=0,
        help_text=_('Deals completed as buyer or seller.')
    )

    rating_total = models.PositiveIntegerField(
        _('rating total'),
        default=0,
        help_text=_('Sum of all feedback ratings received.')
    )

    rating_count = models.PositiveIntegerField(
        _('rating count'),
        default=0,
        help_text=_('Number of feedback ratings received.')
    )

    created_at = models.DateTimeField(
        _('created at'),
        auto_now_add=True,
        help_text=_('Timestamp when the account was created.')
    )

    updated_at = models.DateTimeField(
        _('updated at'),
        auto_now=True,
        help_text=_('Timestamp when the account was last updated.')
    )

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email'], name='user_email_idx'),
        ]

    def __str__(self):
        """Return email as string representation."""
        return self.email or self.username

    @property
    def display_name(self):
        """Full name when set, otherwise the email address."""
        return self.full_name or self.email

    @property
    def rating(self):
        """Public rating derived from the running aggregates."""
        return average_rating(self.rating_total, self.rating_count)

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Email is provided
        - Email is lowercase for case-insensitive uniqueness

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

    def save(self, *args, **kwargs):
        """
        Normalize email and validate on update.

        Creation skips full_clean so duplicate emails surface as the
        database IntegrityError.
        """
        if self.email:
            self.email = self.email.lower()

        if self.pk is not None and not kwargs.get('update_fields'):
            self.full_clean()

        super().save(*args, **kwargs)


# ============================================================================
# Request (Lot) Model
# ============================================================================

class Request(models.Model):
    """
    A buyer's purchase request, surfaced to users as a "lot".

    Buyer name, avatar and rating are snapshotted when the lot is posted so
    the listing renders without joining the account.

    Status moves open -> in_progress when an offer is accepted, then to
    completed or in_dispute following the deal.
    """

    buyer = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='requests',
        help_text=_('Account that posted the lot')
    )

    buyer_name = models.CharField(_('buyer name'), max_length=200)

    buyer_avatar_url = models.CharField(
        _('buyer avatar URL'),
        max_length=500,
        blank=True,
        default='',
        validators=[validate_external_url]
    )

    buyer_rating = models.DecimalField(
        _('buyer rating'),
        max_digits=3,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_('Buyer rating snapshot at posting time')
    )

    title = models.CharField(_('title'), max_length=200)

    description = models.TextField(_('description'), blank=True, default='')

    budget_amount = models.DecimalField(
        _('budget amount'),
        max_digits=12,
        decimal_places=2,
        validators=[validate_positive_amount]
    )

    currency_code = models.CharField(
        _('currency code'),
        max_length=3,
        default='USD',
        validators=[validate_currency_code]
    )

    category = models.CharField(_('category'), max_length=100, blank=True, default='')

    location = models.CharField(_('location'), max_length=200, blank=True, default='')

    deadline = models.DateTimeField(_('deadline'), null=True, blank=True)

    image_url = models.CharField(
        _('image URL'),
        max_length=500,
        blank=True,
        default='',
        validators=[validate_external_url]
    )

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=RequestStatus.choices,
        default=RequestStatus.OPEN
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('request')
        verbose_name_plural = _('requests')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['buyer'], name='request_buyer_idx'),
            models.Index(fields=['status'], name='request_status_idx'),
        ]

    def __str__(self):
        return self.title

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Title is not empty
        - Currency code is stored upper-case

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if not self.title or not self.title.strip():
            raise ValidationError({
                'title': _('Title cannot be empty.')
            })

    def save(self, *args, **kwargs):
        if self.currency_code:
            self.currency_code = self.currency_code.upper()
        if not kwargs.get('update_fields'):
            self.full_clean()
        super().save(*args, **kwargs)


# ============================================================================
# Offer Model
# ============================================================================

class Offer(models.Model):
    """
    A seller's bid against a Request.

    At most one offer per request is ever accepted. Other pending offers on
    the same request stay pending after an acceptance.
    """

    request = models.ForeignKey(
        Request,
        on_delete=models.CASCADE,
        related_name='offers',
        help_text=_('Lot this offer answers')
    )

    seller = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='offers',
        help_text=_('Account that made the offer')
    )

    seller_name = models.CharField(_('seller name'), max_length=200)

    seller_avatar_url = models.CharField(
        _('seller avatar URL'),
        max_length=500,
        blank=True,
        default='',
        validators=[validate_external_url]
    )

    seller_rating = models.DecimalField(
        _('seller rating'),
        max_digits=3,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_('Seller rating snapshot at offer time')
    )

    price_amount = models.DecimalField(
        _('price amount'),
        max_digits=12,
        decimal_places=2,
        validators=[validate_positive_amount]
    )

    currency_code = models.CharField(
        _('currency code'),
        max_length=3,
        validators=[validate_currency_code]
    )

    message = models.TextField(_('message'), blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=20,
        choices=OfferStatus.choices,
        default=OfferStatus.PENDING
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('offer')
        verbose_name_plural = _('offers')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['request', 'status'], name='offer_request_status_idx'),
            models.Index(fields=['seller'], name='offer_seller_idx'),
        ]

    def __str__(self):
        return f"Offer {self.price_amount} {self.currency_code} on {self.request_id}"

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - The seller is not the buyer of the lot

        Raises:
            ValidationError: If validation fails
        """
        super().clean()

        if self.seller_id and self.request_id and self.request.buyer_id == self.seller_id:
            raise ValidationError({
                'seller': _('Request owners cannot make offers on their own lot.')
            })

    def save(self, *args, **kwargs):
        if self.currency_code:
            self.currency_code = self.currency_code.upper()
        if not kwargs.get('update_fields'):
            self.full_clean()
        super().save(*args, **kwargs)


# ============================================================================
# Deal Models
# ============================================================================

class Deal(models.Model):
    """
    The contract formed when an offer is accepted.

    One deal per offer. The status field is the authoritative stage of the
    deal; milestone rows record when each step happened. Both are written
    only by core.acceptance and core.lifecycle.
    """

    request = models.ForeignKey(
        Request,
        on_delete=models.PROTECT,
        related_name='deals'
    )

    offer = models.OneToOneField(
        Offer,
        on_delete=models.PROTECT,
        related_name='deal'
    )

    status = models.CharField(
        _('status'),
        max_length=30,
        choices=DealStatus.choices,
        default=DealStatus.AWAITING_SHIPMENT
    )

    total_amount = models.DecimalField(_('total amount'), max_digits=12, decimal_places=2)

    currency_code = models.CharField(
        _('currency code'),
        max_length=3,
        validators=[validate_currency_code]
    )

    due_at = models.DateTimeField(_('due at'), null=True, blank=True)

    last_message_text = models.TextField(_('last message'), blank=True, default='')

    last_message_at = models.DateTimeField(_('last message at'), null=True, blank=True)

    dispute_reason = models.TextField(_('dispute reason'), blank=True, default='')

    dispute_opened_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    dispute_opened_at = models.DateTimeField(_('dispute opened at'), null=True, blank=True)

    completed_at = models.DateTimeField(_('completed at'), null=True, blank=True)

    buyer_rating = models.PositiveSmallIntegerField(
        _('buyer rating'),
        null=True,
        blank=True,
        help_text=_('Rating the buyer gave the seller')
    )

    seller_rating = models.PositiveSmallIntegerField(
        _('seller rating'),
        null=True,
        blank=True,
        help_text=_('Rating the seller gave the buyer')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('deal')
        verbose_name_plural = _('deals')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='deal_status_idx'),
            models.Index(fields=['request'], name='deal_request_idx'),
        ]

    def __str__(self):
        return f"Deal {self.pk} ({self.status})"

    @property
    def buyer_id(self):
        return self.request.buyer_id

    @property
    def seller_id(self):
        return self.offer.seller_id

    def role_of(self, user_id):
        """
        Work out which side of the deal a user is on.

        Args:
            user_id: Primary key of the acting user

        Returns:
            DealRole | None: BUYER, SELLER, or None for non-participants
        """
        if user_id is None:
            return None
        if self.buyer_id is not None and self.buyer_id == user_id:
            return DealRole.BUYER
        if self.seller_id is not None and self.seller_id == user_id:
            return DealRole.SELLER
        return None

    def is_active(self):
        return self.status in DealStatus.active()


class DealMilestone(models.Model):
    """
    One of the four fixed checkpoints of a deal.

    Rows are inserted together with the deal and never added or removed.
    """

    deal = models.ForeignKey(
        Deal,
        on_delete=models.CASCADE,
        related_name='milestones'
    )

    label = models.CharField(_('label'), max_length=30, choices=MilestoneLabel.choices)

    position = models.PositiveSmallIntegerField(_('position'))

    completed = models.BooleanField(_('completed'), default=False)

    completed_at = models.DateTimeField(_('completed at'), null=True, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('deal milestone')
        verbose_name_plural = _('deal milestones')
        ordering = ['deal', 'position']
        constraints = [
            models.UniqueConstraint(
                fields=['deal', 'label'],
                name='unique_milestone_label_per_deal'
            ),
            models.UniqueConstraint(
                fields=['deal', 'position'],
                name='unique_milestone_position_per_deal'
            ),
        ]

    def __str__(self):
        state = 'done' if self.completed else 'open'
        return f"{self.label} ({state})"


class DealFeedback(models.Model):
    """
    Rating one deal participant gives the other after completion.

    One row per (deal, reviewer); a second submission replaces the first.
    """

    deal = models.ForeignKey(
        Deal,
        on_delete=models.CASCADE,
        related_name='feedback'
    )

    reviewer = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='feedback_given'
    )

    reviewee = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='feedback_received'
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be at least 1.')),
            MaxValueValidator(5, message=_('Rating must be at most 5.'))
        ],
        help_text=_('Rating from 1 to 5 stars')
    )

    comment = models.TextField(_('comment'), blank=True, default='')

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('deal feedback')
        verbose_name_plural = _('deal feedback')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['reviewee'], name='feedback_reviewee_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['deal', 'reviewer'],
                name='unique_feedback_per_deal_reviewer'
            ),
            models.CheckConstraint(
                condition=models.Q(rating__gte=1) & models.Q(rating__lte=5),
                name='feedback_rating_between_1_and_5'
            ),
        ]

    def __str__(self):
        return f"Feedback by {self.reviewer_id} on deal {self.deal_id} - {self.rating}★"


# ============================================================================
# Messaging & Notifications
# ============================================================================

class OfferMessage(models.Model):
    """Chat message between the buyer and the seller of an offer."""

    offer = models.ForeignKey(
        Offer,
        on_delete=models.CASCADE,
        related_name='messages'
    )

    sender = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='offer_messages'
    )

    body = models.TextField(_('body'), blank=True, default='')

    attachment_url = models.CharField(
        _('attachment URL'),
        max_length=500,
        blank=True,
        default='',
        validators=[validate_external_url]
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('offer message')
        verbose_name_plural = _('offer messages')
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['offer', 'created_at'], name='offer_message_created_idx'),
        ]

    def __str__(self):
        return f"Message {self.pk} on offer {self.offer_id}"

    def clean(self):
        super().clean()

        if not self.body.strip() and not self.attachment_url.strip():
            raise ValidationError(_('A message needs a body or an attachment.'))

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Notification(models.Model):
    """In-app notification record. Delivery is left to the client polling it."""

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='notifications'
    )

    type = models.CharField(_('type'), max_length=50)

    title = models.CharField(_('title'), max_length=200)

    body = models.TextField(_('body'), blank=True, default='')

    metadata = models.JSONField(_('metadata'), default=dict, blank=True)

    is_read = models.BooleanField(_('read'), default=False)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)

    class Meta:
        verbose_name = _('notification')
        verbose_name_plural = _('notifications')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
        ]

    def __str__(self):
        return f"{self.type} for {self.user_id}"
