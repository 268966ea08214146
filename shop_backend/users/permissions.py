# users/permissions.py

from rest_framework.permissions import BasePermission

from users.models.user import ROLE_ACCOUNTANT, ROLE_CASHIER, ROLE_MANAGER, ROLE_OWNER


# ---------------- BASE ROLE PERMISSION ----------------
class HasRole(BasePermission):
    """
    Base permission to check user role safely.
    """

    allowed_roles = set()

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and (user.is_superuser or getattr(user, "role", None) in self.allowed_roles)
        )


# ---------------- ROLE PERMISSIONS ----------------
class CanRecordPayments(HasRole):
    """
    Anyone working the counter or the books can record money in/out.
    """

    allowed_roles = {ROLE_OWNER, ROLE_MANAGER, ROLE_ACCOUNTANT, ROLE_CASHIER}


class CanManageLedger(HasRole):
    """
    Issuing invoices, onboarding parties, reconciliation reports.
    """

    allowed_roles = {ROLE_OWNER, ROLE_MANAGER, ROLE_ACCOUNTANT}
