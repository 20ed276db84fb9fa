"""
Role based permission classes for the prescription workflow.
"""
from rest_framework.permissions import BasePermission

PRESCRIBER_ROLES = {"prescriber", "admin"}
PHARMACIST_ROLES = {"pharmacist", "admin"}
CANCEL_ROLES = {"prescriber", "pharmacist", "admin"}


def _role_in(request, roles) -> bool:
    user = getattr(request, "user", None)
    return bool(user and user.is_authenticated and getattr(user, "role", None) in roles)


class IsPrescriberRole(BasePermission):
    """Allow access only to prescribers (and admins)."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role_in(request, PRESCRIBER_ROLES)


class IsPharmacistRole(BasePermission):
    """Allow access only to pharmacists (and admins)."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role_in(request, PHARMACIST_ROLES)


class CanCancel(BasePermission):
    """Prescribers and pharmacists may both cancel."""
    def has_permission(self, request, view) -> bool:
        return _role_in(request, CANCEL_ROLES)
