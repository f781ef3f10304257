"""
URL configuration for the lotbuy_marketplace project.

Every API route lives under /api/; the Django admin is mounted at /admin/.
"""
from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenBlacklistView

from core.views import (
    CustomTokenRefreshView,
    DashboardView,
    DealConfirmView,
    DealDetailView,
    DealDisputeView,
    DealFeedbackView,
    DealListView,
    DealPayView,
    DealShipView,
    EmailTokenObtainPairView,
    HealthView,
    LoginView,
    NotificationListView,
    NotificationReadView,
    OfferAcceptView,
    OfferMessagesView,
    RequestDetailView,
    RequestListCreateView,
    RequestOffersView,
    UserProfileView,
    UserRegistrationView,
)


urlpatterns = [
    path('admin/', admin.site.urls),

    path('api/health/', HealthView.as_view(), name='health'),

    # Authentication endpoints
    path('api/auth/register/', UserRegistrationView.as_view(), name='user_register'),
    path('api/auth/login/', LoginView.as_view(), name='user_login'),
    path('api/auth/logout/', TokenBlacklistView.as_view(), name='user_logout'),
    path('api/me/', UserProfileView.as_view(), name='user_profile'),
    path('api/dashboard/', DashboardView.as_view(), name='dashboard'),

    # JWT endpoints
    path('api/token/', EmailTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),

    # Lots and offers
    path('api/requests/', RequestListCreateView.as_view(), name='request_list'),
    path('api/requests/<int:pk>/', RequestDetailView.as_view(), name='request_detail'),
    path('api/requests/<int:pk>/offers/', RequestOffersView.as_view(), name='request_offers'),
    path('api/offers/<int:pk>/accept/', OfferAcceptView.as_view(), name='offer_accept'),
    path('api/offers/<int:pk>/messages/', OfferMessagesView.as_view(), name='offer_messages'),

    # Deals
    path('api/deals/', DealListView.as_view(), name='deal_list'),
    path('api/deals/<int:pk>/', DealDetailView.as_view(), name='deal_detail'),
    path('api/deals/<int:pk>/ship/', DealShipView.as_view(), name='deal_ship'),
    path('api/deals/<int:pk>/pay/', DealPayView.as_view(), name='deal_pay'),
    path('api/deals/<int:pk>/confirm/', DealConfirmView.as_view(), name='deal_confirm'),
    path('api/deals/<int:pk>/dispute/', DealDisputeView.as_view(), name='deal_dispute'),
    path('api/deals/<int:pk>/feedback/', DealFeedbackView.as_view(), name='deal_feedback'),

    # Notifications
    path('api/notifications/', NotificationListView.as_view(), name='notification_list'),
    path('api/notifications/<int:pk>/read/', NotificationReadView.as_view(), name='notification_read'),
]
