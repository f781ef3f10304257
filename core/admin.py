"""
Django admin configuration for the marketplace models.

Deal status, milestones and the user rating aggregates are owned by the
deal lifecycle, so the admin shows them read-only.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import (
    Deal,
    DealFeedback,
    DealMilestone,
    Notification,
    Offer,
    OfferMessage,
    Request,
    User,
)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Extends Django's UserAdmin with the marketplace profile fields."""

    list_display = [
        'email',
        'full_name',
        'role',
        'completed_deals',
        'rating_count',
        'is_staff',
        'is_active',
        'created_at',
    ]

    list_filter = [
        'role',
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = [
        'email',
        'username',
        'full_name',
    ]

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Profile'), {
            'fields': ('email', 'full_name', 'avatar_url', 'role')
        }),
        (_('Reputation'), {
            'fields': ('completed_deals', 'rating_total', 'rating_count')
        }),
        (_('Permissions'), {
            'fields': (
                'is_active',
                'is_staff',
                'is_superuser',
                'groups',
                'user_permissions',
            ),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': (
                'username',
                'email',
                'full_name',
                'password1',
                'password2',
                'role',
            ),
        }),
    )

    readonly_fields = [
        'completed_deals',
        'rating_total',
        'rating_count',
        'created_at',
        'updated_at',
        'last_login',
        'date_joined',
    ]

    date_hierarchy = 'created_at'

    list_per_page = 25

    def get_readonly_fields(self, request, obj=None):
        if obj:  # Editing an existing object
            return self.readonly_fields
        return []


class OfferInline(admin.TabularInline):
    model = Offer
    extra = 0
    fields = ['seller', 'price_amount', 'currency_code', 'status', 'created_at']
    readonly_fields = ['created_at']
    show_change_link = True


@admin.register(Request)
class RequestAdmin(admin.ModelAdmin):

    list_display = [
        'title',
        'buyer',
        'budget_amount',
        'currency_code',
        'status',
        'created_at',
    ]

    list_filter = ['status', 'currency_code', 'category', 'created_at']

    search_fields = ['title', 'description', 'buyer__email', 'buyer_name']

    readonly_fields = ['created_at', 'updated_at']

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    inlines = [OfferInline]

    fieldsets = (
        (None, {
            'fields': ('title', 'description', 'category', 'location', 'deadline', 'image_url')
        }),
        (_('Budget'), {
            'fields': ('budget_amount', 'currency_code', 'status')
        }),
        (_('Buyer'), {
            'fields': ('buyer', 'buyer_name', 'buyer_avatar_url', 'buyer_rating')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Offer)
class OfferAdmin(admin.ModelAdmin):

    list_display = ['id', 'request', 'seller', 'price_amount', 'currency_code', 'status', 'created_at']

    list_filter = ['status', 'created_at']

    search_fields = ['request__title', 'seller__email', 'seller_name', 'message']

    readonly_fields = ['created_at', 'updated_at']

    ordering = ['-created_at']

    list_per_page = 25


class DealMilestoneInline(admin.TabularInline):
    model = DealMilestone
    extra = 0
    can_delete = False
    fields = ['position', 'label', 'completed', 'completed_at']
    readonly_fields = fields
    ordering = ['position']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Deal)
class DealAdmin(admin.ModelAdmin):

    list_display = [
        'id',
        'request',
        'offer',
        'status',
        'total_amount',
        'currency_code',
        'due_at',
        'completed_at',
    ]

    list_filter = ['status', 'created_at']

    search_fields = ['request__title', 'request__buyer__email', 'offer__seller__email']

    readonly_fields = [
        'request',
        'offer',
        'status',
        'total_amount',
        'currency_code',
        'dispute_reason',
        'dispute_opened_by',
        'dispute_opened_at',
        'completed_at',
        'buyer_rating',
        'seller_rating',
        'created_at',
        'updated_at',
    ]

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    list_per_page = 25

    inlines = [DealMilestoneInline]

    fieldsets = (
        (None, {
            'fields': ('request', 'offer', 'status', 'total_amount', 'currency_code', 'due_at')
        }),
        (_('Last message'), {
            'fields': ('last_message_text', 'last_message_at')
        }),
        (_('Dispute'), {
            'fields': ('dispute_reason', 'dispute_opened_by', 'dispute_opened_at'),
            'classes': ('collapse',),
        }),
        (_('Outcome'), {
            'fields': ('completed_at', 'buyer_rating', 'seller_rating', 'created_at', 'updated_at'),
        }),
    )

    def has_add_permission(self, request):
        return False


@admin.register(DealFeedback)
class DealFeedbackAdmin(admin.ModelAdmin):

    list_display = ['id', 'deal', 'reviewer', 'reviewee', 'rating', 'created_at']

    list_filter = ['rating', 'created_at']

    search_fields = ['reviewer__email', 'reviewee__email', 'comment']

    readonly_fields = ['deal', 'reviewer', 'reviewee', 'rating', 'created_at', 'updated_at']

    ordering = ['-created_at']

    list_per_page = 25

    def has_add_permission(self, request):
        return False


@admin.register(OfferMessage)
class OfferMessageAdmin(admin.ModelAdmin):

    list_display = ['id', 'offer', 'sender', 'created_at']

    search_fields = ['body', 'sender__email']

    readonly_fields = ['created_at']

    ordering = ['-created_at']

    list_per_page = 50


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):

    list_display = ['id', 'user', 'type', 'title', 'is_read', 'created_at']

    list_filter = ['type', 'is_read', 'created_at']

    search_fields = ['user__email', 'title']

    readonly_fields = ['created_at']

    ordering = ['-created_at']

    list_per_page = 50
