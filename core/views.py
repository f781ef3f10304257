"""
API views for the LotBuy marketplace.

Views stay thin: they validate input with serializers, call into
core.acceptance / core.lifecycle / core.feedback, and render the composite
deal view. Marketplace errors propagate to DRF, which renders them with
their own status codes (see core.exceptions).
"""

import logging

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Count
from rest_framework import generics, status
from rest_framework.exceptions import PermissionDenied
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenRefreshSerializer as RotatingRefreshSerializer
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView

from .acceptance import accept_offer
from .dashboard import get_user_stats, pending_offers_for_buyer
from .details import get_deal_details, list_deals_for_user
from .exceptions import MarketplaceError, NotFound, RequestClosed, ValidationFailed
from .feedback import add_feedback
from .lifecycle import confirm_delivery, mark_shipped, open_dispute, submit_payment
from .models import Notification, Offer, Request, RequestStatus
from .notifications import notify_offer_accepted
from .permissions import IsDealParticipant, IsOfferParticipant
from .serializers import (
    DealDetailsSerializer,
    DisputeSerializer,
    EmailTokenObtainPairSerializer,
    FeedbackSerializer,
    LoginSerializer,
    NotificationSerializer,
    OfferCreateSerializer,
    OfferMessageSerializer,
    OfferSerializer,
    RequestCreateSerializer,
    RequestSerializer,
    RequestUpdateSerializer,
    TokenRefreshSerializer,
    UserProfileSerializer,
    UserProfileUpdateSerializer,
    UserRegistrationSerializer,
)

User = get_user_model()
logger = logging.getLogger(__name__)


class ClientIPMixin:

    def get_client_ip(self, request):
        """
        Get client IP address from request.
        Handles proxy headers for accurate IP detection.
        """
        x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
        if x_forwarded_for:
            ip = x_forwarded_for.split(',')[0].strip()
        else:
            ip = request.META.get('REMOTE_ADDR')
        return ip


class HealthView(APIView):
    """GET /api/health/ - liveness probe."""
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, *args, **kwargs):
        return Response({'status': 'ok'}, status=status.HTTP_200_OK)


# ============================================================================
# Authentication
# ============================================================================

class EmailTokenObtainPairView(TokenObtainPairView):
    """
    POST /api/token/ - simplejwt token pair, authenticated by email.
    """
    serializer_class = EmailTokenObtainPairSerializer
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'


class UserRegistrationView(generics.CreateAPIView):
    """
    API endpoint for user registration.

    POST /api/auth/register/
    Request body: {"email", "password", "confirm_password", "full_name",
                   "avatar_url" (optional), "role" (optional)}

    Success response (201): the created profile (no password).
    Duplicate emails, including concurrent duplicates caught by the unique
    index, return 400.
    """
    serializer_class = UserRegistrationSerializer
    permission_classes = [AllowAny]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            self.perform_create(serializer)
        except IntegrityError as e:
            if 'email' in str(e).lower() or 'unique' in str(e).lower():
                return Response(
                    {'email': ['A user with that email already exists.']},
                    status=status.HTTP_400_BAD_REQUEST
                )
            raise

        logger.info(f"Registered user {serializer.instance.id} ({serializer.instance.email})")

        headers = self.get_success_headers(serializer.data)
        return Response(
            UserProfileSerializer(serializer.instance).data,
            status=status.HTTP_201_CREATED,
            headers=headers
        )


class LoginView(ClientIPMixin, APIView):
    """
    API endpoint for login with JWT token generation.

    Security features:
    - Rate limiting (login scope, 5/min by default)
    - Generic error message for every failure to prevent user enumeration
    - Failed attempts logged with client IP

    POST /api/auth/login/
    Request body: {"email": "user@example.com", "password": "..."}

    Success response (200):
    {
        "access": "<jwt_access_token>",
        "refresh": "<jwt_refresh_token>",
        "user": {<profile>}
    }

    Error response (401): {"detail": "Invalid credentials"}
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'
    serializer_class = LoginSerializer

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        email = serializer.validated_data['email'].lower().strip()
        password = serializer.validated_data['password']
        client_ip = self.get_client_ip(request)

        try:
            user = User.objects.get(email__iexact=email)
        except User.DoesNotExist:
            logger.warning(
                f"Failed login attempt for non-existent user. "
                f"Email: {email}, IP: {client_ip}"
            )
            return Response(
                {'detail': 'Invalid credentials'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        if not user.check_password(password) or not user.is_active:
            logger.warning(
                f"Failed login attempt. Email: {email}, IP: {client_ip}"
            )
            return Response(
                {'detail': 'Invalid credentials'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        refresh = RefreshToken.for_user(user)

        logger.info(f"Successful login. Email: {email}, IP: {client_ip}")

        return Response({
            'access': str(refresh.access_token),
            'refresh': str(refresh),
            'user': UserProfileSerializer(user).data,
        }, status=status.HTTP_200_OK)


class CustomTokenRefreshView(ClientIPMixin, APIView):
    """
    API endpoint for refreshing JWT access tokens.

    Rotation and blacklisting follow SIMPLE_JWT (ROTATE_REFRESH_TOKENS and
    BLACKLIST_AFTER_ROTATION are on), so a used refresh token is rejected.

    POST /api/token/refresh/
    Request body: {"refresh": "<jwt_refresh_token>"}

    Success response (200): {"access": "...", "refresh": "..."}

    Error responses:
    - 400: missing refresh field
    - 401: invalid, expired or blacklisted refresh token
    - 429: rate limit exceeded
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'refresh'
    serializer_class = TokenRefreshSerializer

    def post(self, request, *args, **kwargs):
        TokenRefreshSerializer(data=request.data).is_valid(raise_exception=True)

        client_ip = self.get_client_ip(request)
        serializer = RotatingRefreshSerializer(data=request.data)

        try:
            serializer.is_valid(raise_exception=True)
        except TokenError as e:
            logger.warning(f"Failed token refresh attempt. Error: {e}, IP: {client_ip}")
            raise InvalidToken(e.args[0])

        logger.info(f"Successful token refresh. IP: {client_ip}")
        return Response(serializer.validated_data, status=status.HTTP_200_OK)


class UserProfileView(APIView):
    """
    The signed-in user's own profile.

    GET /api/me/
    PATCH /api/me/   Body: any of {"full_name", "avatar_url", "role"}

    Email, password and the rating aggregates are not editable here.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        return Response(UserProfileSerializer(request.user).data, status=status.HTTP_200_OK)

    def patch(self, request, *args, **kwargs):
        serializer = UserProfileUpdateSerializer(
            request.user,
            data=request.data,
            partial=True,
            context={'request': request}
        )
        if not serializer.is_valid():
            logger.warning(
                f"Profile update validation failed. "
                f"User ID: {request.user.id}, Errors: {serializer.errors}"
            )
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        user = serializer.save()
        logger.info(f"Profile updated. User ID: {user.id}")

        return Response(UserProfileSerializer(user).data, status=status.HTTP_200_OK)


class DashboardView(APIView):
    """
    GET /api/dashboard/

    Response (200):
    {
        "user": {<profile>},
        "stats": {"active_lots", "pending_offers", "active_deals",
                  "completed_deals", "offers_made", "unread_notifications",
                  "incoming_messages"},
        "active_lots": [<4 newest lots>],
        "pending_offers": [<6 newest pending offers on my lots>],
        "notifications": [<6 newest notifications>]
    }
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        user = request.user

        active_lots = Request.objects.filter(buyer=user).annotate(
            offer_count=Count('offers')
        ).order_by('-created_at')[:4]

        pending = pending_offers_for_buyer(user.id, limit=6)
        pending_data = []
        for offer in pending:
            item = OfferSerializer(offer).data
            item['request_title'] = offer.request.title
            item['request_image_url'] = offer.request.image_url
            pending_data.append(item)

        notifications = Notification.objects.filter(user=user).order_by('-created_at')[:6]

        return Response({
            'user': UserProfileSerializer(user).data,
            'stats': get_user_stats(user.id),
            'active_lots': RequestSerializer(active_lots, many=True).data,
            'pending_offers': pending_data,
            'notifications': NotificationSerializer(notifications, many=True).data,
        }, status=status.HTTP_200_OK)


# ============================================================================
# Lots & offers
# ============================================================================

def _get_lot(pk):
    try:
        return Request.objects.get(pk=pk)
    except Request.DoesNotExist:
        raise NotFound('Request not found.')


class RequestListCreateView(ClientIPMixin, APIView):
    """
    GET /api/requests/?status=open&owner=me
        Public, paginated list of lots, newest first.
    POST /api/requests/
        Create a lot as the signed-in buyer (201).
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, *args, **kwargs):
        queryset = Request.objects.annotate(offer_count=Count('offers')).order_by('-created_at', '-id')

        status_filter = request.query_params.get('status')
        if status_filter:
            if status_filter not in RequestStatus.values:
                raise ValidationFailed(
                    f"Unknown status '{status_filter}'. Use one of: {', '.join(RequestStatus.values)}."
                )
            queryset = queryset.filter(status=status_filter)

        if request.query_params.get('owner') == 'me':
            if not request.user.is_authenticated:
                raise PermissionDenied('Sign in to list your own lots.')
            queryset = queryset.filter(buyer=request.user)

        paginator = PageNumberPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response(RequestSerializer(page, many=True).data)

    def post(self, request, *args, **kwargs):
        serializer = RequestCreateSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        lot = serializer.save()

        logger.info(
            f"Request {lot.id} created by user {request.user.id}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response(RequestSerializer(lot).data, status=status.HTTP_201_CREATED)


class RequestDetailView(ClientIPMixin, APIView):
    """
    GET /api/requests/<id>/
        Public lot detail.
    PATCH /api/requests/<id>/
        Edit title, description, budget, currency, category, location,
        deadline or image. Owner only, while the lot is open.
    DELETE /api/requests/<id>/
        Remove the lot and its offers (204). Owner only, while the lot is
        open. A lot that has a deal is kept.
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, pk, *args, **kwargs):
        lot = _get_lot(pk)
        return Response(RequestSerializer(lot).data, status=status.HTTP_200_OK)

    def _lock_owned_open_lot(self, request, pk):
        try:
            lot = Request.objects.select_for_update().get(pk=pk)
        except Request.DoesNotExist:
            raise NotFound('Request not found.')

        if lot.buyer_id is None or lot.buyer_id != request.user.id:
            logger.warning(
                f"User {request.user.id} tried to {request.method} request {lot.id} "
                f"they do not own, IP: {self.get_client_ip(request)}"
            )
            raise PermissionDenied('Only the buyer who posted this lot can change it.')

        if lot.status != RequestStatus.OPEN:
            raise RequestClosed()

        return lot

    def patch(self, request, pk, *args, **kwargs):
        with transaction.atomic():
            lot = self._lock_owned_open_lot(request, pk)
            serializer = RequestUpdateSerializer(
                lot,
                data=request.data,
                partial=True,
                context={'request': request}
            )
            serializer.is_valid(raise_exception=True)
            lot = serializer.save()

        logger.info(f"Request {lot.id} updated by user {request.user.id}")
        return Response(RequestSerializer(lot).data, status=status.HTTP_200_OK)

    def delete(self, request, pk, *args, **kwargs):
        with transaction.atomic():
            lot = self._lock_owned_open_lot(request, pk)
            lot_id = lot.id
            lot.delete()

        logger.info(
            f"Request {lot_id} deleted by user {request.user.id}, "
            f"IP: {self.get_client_ip(request)}"
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class RequestOffersView(ClientIPMixin, APIView):
    """
    GET /api/requests/<id>/offers/
        Public list of offers on a lot, newest first.
    POST /api/requests/<id>/offers/
        Make an offer (201). The lot must be open and the caller must not be
        its buyer.
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request, pk, *args, **kwargs):
        lot = _get_lot(pk)
        offers = lot.offers.select_related('deal').order_by('-created_at', '-id')
        return Response(OfferSerializer(offers, many=True).data, status=status.HTTP_200_OK)

    def post(self, request, pk, *args, **kwargs):
        lot = _get_lot(pk)
        client_ip = self.get_client_ip(request)

        if lot.buyer_id == request.user.id:
            logger.warning(
                f"User {request.user.id} tried to offer on own request {lot.id}, IP: {client_ip}"
            )
            raise PermissionDenied('Request owners cannot make offers on their own lot.')

        if lot.status != RequestStatus.OPEN:
            raise RequestClosed()

        serializer = OfferCreateSerializer(
            data=request.data,
            context={'request': request, 'lot': lot}
        )
        serializer.is_valid(raise_exception=True)
        offer = serializer.save()

        logger.info(
            f"Offer {offer.id} created on request {lot.id} by user {request.user.id}, IP: {client_ip}"
        )
        return Response(OfferSerializer(offer).data, status=status.HTTP_201_CREATED)


class OfferAcceptView(ClientIPMixin, APIView):
    """
    Accept an offer and open a deal.

    POST /api/offers/<id>/accept/

    Success response (201): composite deal view.

    Error responses:
    - 403 deal_unauthorized: caller is not the lot's buyer
    - 404 not_found: unknown offer
    - 409 offer_unavailable: offer is not pending
    - 409 request_closed: lot already has a deal
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        client_ip = self.get_client_ip(request)

        try:
            details = accept_offer(pk, acting_user_id=request.user.id)
        except MarketplaceError as e:
            logger.warning(
                f"Offer {pk} accept rejected ({e.get_codes()}). "
                f"User ID: {request.user.id}, IP: {client_ip}"
            )
            raise

        notify_offer_accepted(details)

        serializer = DealDetailsSerializer(details, context={'request': request})
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class OfferMessagesView(APIView):
    """
    Chat between the buyer of a lot and the seller of one offer.

    GET /api/offers/<id>/messages/   oldest first
    POST /api/offers/<id>/messages/  Body: {"body", "attachment_url"}; one required

    Only the two participants may read or post (403 otherwise).
    """
    permission_classes = [IsAuthenticated, IsOfferParticipant]

    def get_offer(self, request, pk):
        try:
            offer = Offer.objects.select_related('request').get(pk=pk)
        except Offer.DoesNotExist:
            raise NotFound('Offer not found.')
        self.check_object_permissions(request, offer)
        return offer

    def get(self, request, pk, *args, **kwargs):
        offer = self.get_offer(request, pk)
        messages = offer.messages.select_related('sender').order_by('created_at', 'id')
        return Response(OfferMessageSerializer(messages, many=True).data, status=status.HTTP_200_OK)

    def post(self, request, pk, *args, **kwargs):
        offer = self.get_offer(request, pk)

        serializer = OfferMessageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        message = serializer.save(offer=offer, sender=request.user)

        return Response(OfferMessageSerializer(message).data, status=status.HTTP_201_CREATED)


# ============================================================================
# Deals
# ============================================================================

class DealListView(APIView):
    """GET /api/deals/ - the caller's deals as buyer or seller, newest first."""
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        deals = list_deals_for_user(request.user.id)

        paginator = PageNumberPagination()
        page = paginator.paginate_queryset(deals, request, view=self)
        serializer = DealDetailsSerializer(page, many=True, context={'request': request})
        return paginator.get_paginated_response(serializer.data)


class DealDetailView(ClientIPMixin, APIView):
    """
    GET /api/deals/<id>/

    Composite view: deal, lot, offer, participants and milestones in
    position order. Non-participants get 403.
    """
    permission_classes = [IsAuthenticated, IsDealParticipant]

    def get(self, request, pk, *args, **kwargs):
        details = get_deal_details(pk)

        try:
            self.check_object_permissions(request, details)
        except PermissionDenied:
            logger.warning(
                f"Non-participant {request.user.id} tried to read deal {pk}, "
                f"IP: {self.get_client_ip(request)}"
            )
            raise

        serializer = DealDetailsSerializer(details, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)


class DealActionView(ClientIPMixin, APIView):
    """
    Base for the deal transitions. Subclasses set ``action_name`` and
    implement ``perform``.

    Every transition answers 200 with the composite deal view, or one of:
    - 403 deal_unauthorized
    - 404 not_found
    - 409 milestone_already_completed / deal_state_conflict
    """
    permission_classes = [IsAuthenticated]
    action_name = None

    def perform(self, request, deal_id):
        raise NotImplementedError

    def post(self, request, pk, *args, **kwargs):
        try:
            details = self.perform(request, pk)
        except MarketplaceError as e:
            logger.warning(
                f"Deal {pk} {self.action_name} rejected ({e.get_codes()}). "
                f"User ID: {request.user.id}, IP: {self.get_client_ip(request)}"
            )
            raise

        serializer = DealDetailsSerializer(details, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)


class DealShipView(DealActionView):
    """POST /api/deals/<id>/ship/ - seller marks the item shipped."""
    action_name = 'ship'

    def perform(self, request, deal_id):
        return mark_shipped(deal_id, request.user.id)


class DealPayView(DealActionView):
    """POST /api/deals/<id>/pay/ - buyer submits payment."""
    action_name = 'pay'

    def perform(self, request, deal_id):
        return submit_payment(deal_id, request.user.id)


class DealConfirmView(DealActionView):
    """POST /api/deals/<id>/confirm/ - seller confirms completion."""
    action_name = 'confirm'

    def perform(self, request, deal_id):
        return confirm_delivery(deal_id, request.user.id)


class DealDisputeView(DealActionView):
    """POST /api/deals/<id>/dispute/  Body: {"reason": "..."} (optional)"""
    action_name = 'dispute'

    def perform(self, request, deal_id):
        serializer = DisputeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return open_dispute(deal_id, request.user.id, serializer.validated_data['reason'])


class DealFeedbackView(DealActionView):
    """
    POST /api/deals/<id>/feedback/  Body: {"rating": 1-5, "comment": "..."}

    Posting again replaces the caller's earlier rating.
    Extra error responses: 400 invalid_rating, 422 incomplete_deal.
    """
    action_name = 'feedback'

    def perform(self, request, deal_id):
        serializer = FeedbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return add_feedback(
            deal_id,
            request.user.id,
            serializer.validated_data['rating'],
            serializer.validated_data['comment'],
        )


# ============================================================================
# Notifications
# ============================================================================

class NotificationListView(APIView):
    """
    GET /api/notifications/?unread=true&limit=20

    Newest first. limit defaults to 50 and is capped at 100.
    """
    permission_classes = [IsAuthenticated]

    DEFAULT_LIMIT = 50
    MAX_LIMIT = 100

    def get(self, request, *args, **kwargs):
        queryset = Notification.objects.filter(user=request.user).order_by('-created_at', '-id')

        if request.query_params.get('unread', '').lower() == 'true':
            queryset = queryset.filter(is_read=False)

        raw_limit = request.query_params.get('limit')
        limit = self.DEFAULT_LIMIT
        if raw_limit:
            try:
                limit = int(raw_limit)
            except ValueError:
                raise ValidationFailed('limit must be an integer.')
            if limit < 1:
                raise ValidationFailed('limit must be positive.')
            limit = min(limit, self.MAX_LIMIT)

        return Response(
            NotificationSerializer(queryset[:limit], many=True).data,
            status=status.HTTP_200_OK
        )


class NotificationReadView(APIView):
    """POST /api/notifications/<id>/read/ - mark one of my notifications read (204)."""
    permission_classes = [IsAuthenticated]

    def post(self, request, pk, *args, **kwargs):
        updated = Notification.objects.filter(pk=pk, user=request.user).update(is_read=True)
        if not updated:
            raise NotFound('Notification not found.')
        return Response(status=status.HTTP_204_NO_CONTENT)
