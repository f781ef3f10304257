"""
Serializers for authentication, lots, offers, messages and deals.
"""

from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.contrib.auth.hashers import make_password
from django.db import transaction

from .models import (
    Notification,
    Offer,
    OfferMessage,
    OfferStatus,
    Request,
    RequestStatus,
)
from .validators import validate_currency_code, validate_external_url

User = get_user_model()


# ============================================================================
# Authentication & profile
# ============================================================================

class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Token pair serializer that authenticates with email instead of username.

    Credentials go through core.backends.EmailBackend.
    """
    username_field = 'email'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if 'username' in self.fields:
            del self.fields['username']
        if 'email' not in self.fields:
            self.fields['email'] = serializers.EmailField()


class UserRegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration.

    Fields:
    - email: Required, unique, valid email format
    - password: Required, must pass Django's password validators
    - confirm_password: Required, must match password
    - full_name: Required display name
    - avatar_url: Optional http(s) link
    - role: buyer, seller or both (defaults to both)
    """

    password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    confirm_password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'password', 'confirm_password', 'full_name',
                  'avatar_url', 'role', 'created_at']
        read_only_fields = ['id', 'created_at']
        extra_kwargs = {
            'email': {'required': True},
            'full_name': {'required': True, 'allow_blank': False},
        }

    def validate_email(self, value):
        """Normalize and check case-insensitive uniqueness."""
        value = value.strip().lower()

        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError(
                "A user with that email already exists."
            )

        return value

    def validate_password(self, value):
        try:
            validate_password(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))

        return value

    def validate_full_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Full name cannot be empty.")
        return value

    def validate(self, attrs):
        if attrs.get('password') != attrs.get('confirm_password'):
            raise serializers.ValidationError({
                'confirm_password': 'Password confirmation does not match.'
            })

        return attrs

    def create(self, validated_data):
        """
        Create the account with a hashed password.

        Privileged flags are never taken from input. The username mirrors the
        email since login is by email.
        """
        validated_data.pop('confirm_password', None)
        validated_data['password'] = make_password(validated_data.pop('password'))

        for field in ('is_superuser', 'is_staff', 'is_active', 'groups', 'user_permissions',
                      'completed_deals', 'rating_total', 'rating_count'):
            validated_data.pop(field, None)

        validated_data['username'] = validated_data['email'][:150]

        with transaction.atomic():
            user = User.objects.create(**validated_data)

        return user


class LoginSerializer(serializers.Serializer):
    """
    Email and password for login.

    Authentication itself happens in the view so that every failure returns
    the same generic error.
    """
    email = serializers.EmailField(
        required=True,
        help_text='User email address'
    )
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'},
        help_text='User password'
    )


class TokenRefreshSerializer(serializers.Serializer):
    refresh = serializers.CharField(
        required=True,
        help_text='Valid refresh token to exchange for new access token'
    )


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Read-only profile, without credentials or permission flags.

    rating is derived from the running aggregates (null when unrated).
    """

    rating = serializers.DecimalField(max_digits=3, decimal_places=2, read_only=True, allow_null=True)

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'full_name',
            'avatar_url',
            'role',
            'rating',
            'rating_count',
            'completed_deals',
            'created_at',
        ]
        read_only_fields = fields


class UserProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Profile updates (PATCH). Only display fields can change; email,
    password and the rating aggregates cannot.
    """

    class Meta:
        model = User
        fields = ['full_name', 'avatar_url', 'role']
        extra_kwargs = {
            'full_name': {'required': False},
            'avatar_url': {'required': False},
            'role': {'required': False},
        }

    def validate_full_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Full name cannot be empty.")
        return value

    def update(self, instance, validated_data):
        fields_to_update = []
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
            fields_to_update.append(attr)

        if fields_to_update:
            fields_to_update.append('updated_at')
            instance.save(update_fields=fields_to_update)

        return instance


# ============================================================================
# Lots (Requests)
# ============================================================================

class RequestSerializer(serializers.ModelSerializer):
    """Lot as shown in listings and detail pages."""

    offer_count = serializers.SerializerMethodField()

    class Meta:
        model = Request
        fields = [
            'id',
            'title',
            'description',
            'budget_amount',
            'currency_code',
            'category',
            'location',
            'deadline',
            'image_url',
            'status',
            'buyer_id',
            'buyer_name',
            'buyer_avatar_url',
            'buyer_rating',
            'offer_count',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_offer_count(self, obj):
        annotated = getattr(obj, 'offer_count', None)
        if annotated is not None:
            return annotated
        return obj.offers.count()


class RequestCreateSerializer(serializers.ModelSerializer):
    """
    Create a lot. The buyer and their name/avatar/rating snapshot come from
    the authenticated user, never from input.
    """

    currency_code = serializers.CharField(max_length=3, required=False, default='USD')

    class Meta:
        model = Request
        fields = [
            'title',
            'description',
            'budget_amount',
            'currency_code',
            'category',
            'location',
            'deadline',
            'image_url',
        ]
        extra_kwargs = {
            'title': {'required': True},
            'budget_amount': {'required': True},
        }

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title cannot be empty.")
        return value

    def validate_currency_code(self, value):
        value = value.strip().upper()
        try:
            validate_currency_code(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return value

    def create(self, validated_data):
        user = self.context['request'].user
        return Request.objects.create(
            buyer=user,
            buyer_name=user.display_name,
            buyer_avatar_url=user.avatar_url,
            buyer_rating=user.rating,
            status=RequestStatus.OPEN,
            **validated_data
        )


class RequestUpdateSerializer(RequestCreateSerializer):
    """
    Owner edits of an open lot (PATCH). Status, buyer and the buyer
    snapshot are not editable.
    """

    def update(self, instance, validated_data):
        fields_to_update = []
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
            fields_to_update.append(attr)

        if fields_to_update:
            fields_to_update.append('updated_at')
            instance.save(update_fields=fields_to_update)

        return instance


# ============================================================================
# Offers
# ============================================================================

class OfferSerializer(serializers.ModelSerializer):

    deal_id = serializers.SerializerMethodField()

    class Meta:
        model = Offer
        fields = [
            'id',
            'request_id',
            'seller_id',
            'seller_name',
            'seller_avatar_url',
            'seller_rating',
            'price_amount',
            'currency_code',
            'message',
            'status',
            'deal_id',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_deal_id(self, obj):
        if obj.status == OfferStatus.PENDING:
            return None
        deal = getattr(obj, 'deal', None)
        return deal.id if deal is not None else None


class OfferCreateSerializer(serializers.ModelSerializer):
    """
    Create an offer on a lot.

    The view passes the target lot in context as ``lot``. Currency defaults
    to the lot's currency.
    """

    currency_code = serializers.CharField(max_length=3, required=False)

    class Meta:
        model = Offer
        fields = ['price_amount', 'currency_code', 'message']
        extra_kwargs = {
            'price_amount': {'required': True},
        }

    def validate_currency_code(self, value):
        value = value.strip().upper()
        try:
            validate_currency_code(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return value

    def create(self, validated_data):
        user = self.context['request'].user
        lot = self.context['lot']
        validated_data.setdefault('currency_code', lot.currency_code)
        return Offer.objects.create(
            request=lot,
            seller=user,
            seller_name=user.display_name,
            seller_avatar_url=user.avatar_url,
            seller_rating=user.rating,
            status=OfferStatus.PENDING,
            **validated_data
        )


class OfferMessageSerializer(serializers.ModelSerializer):
    """Offer chat message. A body or an attachment link is required."""

    sender_id = serializers.IntegerField(read_only=True)
    sender_name = serializers.CharField(source='sender.display_name', read_only=True)

    class Meta:
        model = OfferMessage
        fields = ['id', 'offer_id', 'sender_id', 'sender_name', 'body', 'attachment_url', 'created_at']
        read_only_fields = ['id', 'offer_id', 'sender_id', 'sender_name', 'created_at']
        extra_kwargs = {
            'body': {'required': False, 'allow_blank': True},
            'attachment_url': {'required': False, 'allow_blank': True},
        }

    def validate_attachment_url(self, value):
        value = value.strip()
        try:
            validate_external_url(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return value

    def validate(self, attrs):
        body = (attrs.get('body') or '').strip()
        attachment = (attrs.get('attachment_url') or '').strip()
        if not body and not attachment:
            raise serializers.ValidationError(
                'A message needs a body or an attachment.'
            )
        attrs['body'] = body
        attrs['attachment_url'] = attachment
        return attrs


class NotificationSerializer(serializers.ModelSerializer):

    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'body', 'metadata', 'is_read', 'created_at']
        read_only_fields = fields


# ============================================================================
# Deals
# ============================================================================

class DisputeSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='', max_length=2000)


class FeedbackSerializer(serializers.Serializer):
    """
    Feedback input. The 1-5 range is enforced by core.feedback so that
    out-of-range values surface as invalid_rating.
    """
    rating = serializers.IntegerField(required=True)
    comment = serializers.CharField(required=False, allow_blank=True, default='', max_length=2000)


class ParticipantSummarySerializer(serializers.Serializer):
    id = serializers.IntegerField(allow_null=True)
    name = serializers.CharField()
    avatar_url = serializers.CharField()
    rating = serializers.DecimalField(max_digits=3, decimal_places=2, allow_null=True)


class OfferSummarySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    price_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency_code = serializers.CharField()
    message = serializers.CharField()
    status = serializers.CharField()


class MilestoneSummarySerializer(serializers.Serializer):
    label = serializers.CharField()
    position = serializers.IntegerField()
    completed = serializers.BooleanField()
    completed_at = serializers.DateTimeField(allow_null=True)


class DealDetailsSerializer(serializers.Serializer):
    """Renders core.details.DealDetails."""

    id = serializers.IntegerField()
    status = serializers.CharField()
    request_id = serializers.IntegerField()
    request_title = serializers.CharField()
    request_status = serializers.CharField()
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency_code = serializers.CharField()
    due_at = serializers.DateTimeField(allow_null=True)
    last_message_text = serializers.CharField()
    last_message_at = serializers.DateTimeField(allow_null=True)
    dispute_reason = serializers.CharField()
    dispute_opened_by_id = serializers.IntegerField(allow_null=True)
    dispute_opened_at = serializers.DateTimeField(allow_null=True)
    completed_at = serializers.DateTimeField(allow_null=True)
    buyer_rating = serializers.IntegerField(allow_null=True)
    seller_rating = serializers.IntegerField(allow_null=True)
    created_at = serializers.DateTimeField()
    updated_at = serializers.DateTimeField()
    buyer = ParticipantSummarySerializer()
    seller = ParticipantSummarySerializer()
    offer = OfferSummarySerializer()
    milestones = MilestoneSummarySerializer(many=True)
    my_role = serializers.SerializerMethodField()

    def get_my_role(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return None
        return obj.role_of(request.user.id)
