"""Test helpers: in-memory directory and ledger fakes."""

from __future__ import annotations

import asyncio
from typing import Any

from algosdk import account

from registrar.sdk.errors import BackendError, TransactionReverted
from registrar.sdk.models import (
    KycStatus,
    LedgerRole,
    Role,
    RoleMembership,
    User,
    normalize_wallet,
)

ADMIN_WALLET = "0xadmin000000000000000000000000000000000001"


def new_wallet() -> str:
    """Fresh Algorand address in directory (lowercase) form."""
    _, address = account.generate_account()
    return address.lower()


class FakeDirectory:
    """In-memory stand-in for DirectoryClient."""

    def __init__(self, users: list[User] | None = None) -> None:
        self.users: list[User] = list(users or [])
        self.calls: list[tuple[str, Any]] = []
        self.fail_next: Exception | None = None
        self.pending_only = False
        self.pending_gate: asyncio.Event | None = None
        self.otp_response: dict[str, Any] = {"status": "otp_sent"}
        self.otp_error: Exception | None = None
        self.valid_otp = "123456"
        self.token = "opaque-token"
        self.registered: list[dict[str, Any]] = []

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    async def list_pending_kyc(self) -> list[User]:
        self.calls.append(("list_pending_kyc", None))
        self._maybe_fail()
        if self.pending_only:
            return [u for u in self.users if u.kyc_status is KycStatus.PENDING]
        return list(self.users)

    async def set_kyc_status(self, user_id: str, status: KycStatus, reason: str | None = None) -> User:
        self.calls.append(("set_kyc_status", (user_id, status, reason)))
        if self.pending_gate is not None:
            await self.pending_gate.wait()
        self._maybe_fail()
        for i, user in enumerate(self.users):
            if user.id == user_id:
                self.users[i] = user.model_copy(update={"kyc_status": status})
                return self.users[i]
        raise BackendError(404, "User not found")

    async def list_users(self) -> list[User]:
        self.calls.append(("list_users", None))
        self._maybe_fail()
        return list(self.users)

    async def users_by_role(self, role: Role) -> list[User]:
        self.calls.append(("users_by_role", role))
        self._maybe_fail()
        return [u for u in self.users if u.role is role]

    async def get_profile(self) -> User:
        return self.users[0]

    async def request_admin_otp(self, wallet_address: str) -> dict[str, Any]:
        self.calls.append(("request_admin_otp", wallet_address))
        if self.otp_error is not None:
            raise self.otp_error
        return dict(self.otp_response)

    async def verify_admin_otp(self, wallet_address: str, otp: str) -> tuple[str, User]:
        self.calls.append(("verify_admin_otp", (wallet_address, otp)))
        if otp != self.valid_otp:
            raise BackendError(401, "Invalid OTP")
        user = next(u for u in self.users if u.wallet_address == normalize_wallet(wallet_address))
        return self.token, user

    async def register_department_user(
        self, name: str, email: str, nic: str, wallet_address: str, role: Role
    ) -> User:
        self.calls.append(("register_department_user", (name, email, nic, wallet_address, role)))
        self._maybe_fail()
        self.registered.append(
            {"name": name, "email": email, "nic": nic, "wallet_address": wallet_address, "role": role}
        )
        user = User(
            id=f"dept{len(self.registered)}", name=name, email=email, nic=nic,
            wallet_address=wallet_address, role=role,
        )
        self.users.append(user)
        return user

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)


class FakeLedger:
    """Role oracle and executor over an in-memory membership table."""

    def __init__(self) -> None:
        self.granted: set[tuple[LedgerRole, str]] = set()
        self.grant_calls: list[tuple[LedgerRole, str]] = []
        self.lookup_calls: list[str] = []
        self.fail_grant: Exception | None = None
        self.fail_lookup: Exception | None = None
        self.grant_gate: asyncio.Event | None = None
        self.lookup_gate: asyncio.Event | None = None

    async def get_roles_of(self, wallet_address: str) -> RoleMembership:
        self.lookup_calls.append(wallet_address)
        if self.lookup_gate is not None:
            await self.lookup_gate.wait()
        if self.fail_lookup is not None:
            raise self.fail_lookup
        return RoleMembership.from_roles(
            {role: (role, wallet_address) in self.granted for role in LedgerRole}
        )

    async def add_signer(self, role: LedgerRole, wallet_address: str) -> str:
        self.grant_calls.append((role, wallet_address))
        if self.grant_gate is not None:
            await self.grant_gate.wait()
        if self.fail_grant is not None:
            error, self.fail_grant = self.fail_grant, None
            raise error
        if (role, wallet_address) in self.granted:
            raise TransactionReverted("role already granted")
        self.granted.add((role, wallet_address))
        return f"TX{len(self.grant_calls)}"


def make_user(user_id: str, **overrides: Any) -> User:
    data: dict[str, Any] = {
        "_id": user_id,
        "name": f"User {user_id}",
        "email": f"{user_id}@example.com",
        "walletAddress": new_wallet(),
        "role": "user",
        "kycStatus": "pending",
    }
    data.update(overrides)
    return User.model_validate(data)


