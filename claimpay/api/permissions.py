"""
Role checks for ClaimPay users.

Customers see their own claims; insurers and admins see every claim and
are the only roles allowed to move money.
"""

from rest_framework.permissions import BasePermission

from claimpay.settlements.exceptions import AuthorizationError


def get_user_role(user):
    """Role of ``user``, or None for anonymous users and users without a profile."""
    if not user or not user.is_authenticated:
        return None
    if user.is_superuser:
        return "admin"
    profile = getattr(user, "profile", None)
    return profile.role if profile else None


def can_initiate_settlements(user) -> bool:
    return get_user_role(user) in ("insurer", "admin")


def is_staff_role(user) -> bool:
    return get_user_role(user) in ("insurer", "admin")


class CanInitiateSettlement(BasePermission):
    """Allow transfers, recipients and retries for insurers and admins only."""

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if not can_initiate_settlements(request.user):
            raise AuthorizationError()
        return True


class IsClaimOwnerOrStaff(BasePermission):
    """Customers may read their own claims; insurers and admins may read all."""

    def has_permission(self, request, view):
        return get_user_role(request.user) is not None

    def has_object_permission(self, request, view, obj):
        if is_staff_role(request.user):
            return True
        return getattr(obj, "customer_id", None) == request.user.pk
