"""
Custom permission classes for the LotBuy marketplace.

Write paths are authorized inside core.lifecycle / core.feedback (the role
is re-derived under the deal lock). These classes guard the read paths.
"""

from rest_framework import permissions


class IsDealParticipant(permissions.BasePermission):
    """
    Object permission allowing only the deal's buyer or seller.

    Works on anything exposing ``role_of(user_id)``: a Deal model instance
    or a core.details.DealDetails view.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsDealParticipant]
            ...
            self.check_object_permissions(request, details)
    """

    message = 'Only the buyer or the seller of this deal can view it.'

    def has_object_permission(self, request, view, obj):
        if not request.user or not request.user.is_authenticated:
            return False

        return obj.role_of(request.user.id) is not None


class IsOfferParticipant(permissions.BasePermission):
    """
    Object permission for an Offer: the seller who made it or the buyer of
    the lot it answers.
    """

    message = 'Only the buyer or the seller on this offer can access its messages.'

    def has_object_permission(self, request, view, obj):
        if not request.user or not request.user.is_authenticated:
            return False

        user_id = request.user.id
        return user_id in (obj.seller_id, obj.request.buyer_id)
