"""Department onboarding workflow.

Registers notary, surveyor and valuation-institution users. Admin, registrar
and public users are provisioned elsewhere.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from registrar.sdk.directory import DirectoryClient
from registrar.sdk.errors import ValidationError
from registrar.sdk.models import (
    DEPARTMENT_ROLES,
    DepartmentRegistration,
    DepartmentStatistics,
    KycStatus,
    RoleStats,
    User,
    normalize_wallet,
)
from registrar.sdk.session import SessionContext

log = logging.getLogger(__name__)

RECENT_REGISTRATIONS = 6
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created(user: User) -> datetime:
    created = user.created_at
    if created is None:
        return _EPOCH
    return created if created.tzinfo else created.replace(tzinfo=timezone.utc)


class DepartmentOnboarding:
    """Submit department registrations and report onboarding statistics.

    Statistics are never cached; callers reload them after a registration.
    """

    def __init__(self, directory: DirectoryClient, context: SessionContext) -> None:
        self.directory = directory
        self.context = context

    async def register_department_user(self, registration: DepartmentRegistration) -> User:
        """Create the user. ``registration`` is left untouched on any failure."""
        self.context.require_admin()
        fields = {
            "name": registration.name.strip(),
            "email": registration.email.strip(),
            "nic": registration.nic.strip(),
            "wallet_address": normalize_wallet(registration.wallet_address) or "",
        }
        missing = [name for name, value in fields.items() if not value]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", {"fields": missing})
        if "@" not in fields["email"]:
            raise ValidationError("Email address is invalid", {"fields": ["email"]})
        if registration.role not in DEPARTMENT_ROLES:
            raise ValidationError(
                f"Role {registration.role.value} cannot be registered here",
                {"fields": ["role"]},
            )

        user = await self.directory.register_department_user(
            fields["name"], fields["email"], fields["nic"], fields["wallet_address"], registration.role
        )
        log.info("Registered %s %s (%s)", registration.role.value, user.id, fields["wallet_address"])
        return user

    async def load_statistics(self, recent_limit: int = RECENT_REGISTRATIONS) -> DepartmentStatistics:
        """Verified/pending counts per department role and latest registrations."""
        users = await self.directory.list_users()
        department = [u for u in users if u.role in DEPARTMENT_ROLES]

        by_role = {role: RoleStats() for role in DEPARTMENT_ROLES}
        for user in department:
            stats = by_role[user.role]
            if user.kyc_status is KycStatus.VERIFIED:
                stats.verified += 1
            elif user.kyc_status is KycStatus.PENDING:
                stats.pending += 1

        recent = sorted(department, key=_created, reverse=True)[:recent_limit]
        return DepartmentStatistics(by_role=by_role, recent=recent)
