"""Per-role signer request views.

Each view lists the directory users of one department role together with
their on-chain membership, and grants the role to verified users that do not
hold it yet. Membership is re-queried after every grant attempt; that re-query
is the only guard against submitting the same grant twice.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from pydantic import BaseModel

from registrar.sdk.directory import DirectoryClient
from registrar.sdk.errors import (
    AlreadyProcessing,
    DuplicateGrant,
    RegistrarError,
    TransactionReverted,
    ValidationError,
)
from registrar.sdk.inflight import InFlightTracker
from registrar.sdk.ledger import RoleGrantExecutor, RoleOracle
from registrar.sdk.models import DEPARTMENT_ROLES, KycStatus, Role, RoleMembership, User, normalize_wallet
from registrar.sdk.session import SessionContext

log = logging.getLogger(__name__)


class SignerAction(str, Enum):
    """What the registrar can do for a candidate row."""
    ADD = "add"
    ALREADY_ADDED = "already_added"
    PROCESSING = "processing"
    KYC_NOT_VERIFIED = "kyc_not_verified"
    NO_WALLET = "no_wallet"
    UNKNOWN = "unknown"


class SignerCandidate(BaseModel):
    """Directory user plus their membership; ``None`` when the lookup failed."""

    user: User
    membership: RoleMembership | None = None


class SignerRequestsView:
    """Candidates for one department role and the grant action on them."""

    def __init__(
        self,
        role: Role,
        directory: DirectoryClient,
        oracle: RoleOracle,
        executor: RoleGrantExecutor,
        context: SessionContext,
    ) -> None:
        if role not in DEPARTMENT_ROLES:
            raise ValidationError(f"{role.value} is not a department role")
        self.role = role
        self.ledger_role = DEPARTMENT_ROLES[role]
        self.directory = directory
        self.oracle = oracle
        self.executor = executor
        self.context = context
        self._candidates: list[SignerCandidate] = []
        self._generation = 0
        self._inflight = InFlightTracker(repeatable=True)

    @property
    def candidates(self) -> list[SignerCandidate]:
        return list(self._candidates)

    async def load(self) -> list[SignerCandidate]:
        """Fetch role users and their memberships.

        Lookups run concurrently. Results arriving after :meth:`close` or a
        newer load are discarded.
        """
        self._generation += 1
        generation = self._generation
        users = await self.directory.users_by_role(self.role)
        memberships = await asyncio.gather(*(self._lookup(u.wallet_address) for u in users))
        if generation != self._generation:
            log.debug("Discarding superseded %s signer load", self.role.value)
            return self.candidates
        self._candidates = [
            SignerCandidate(user=user, membership=membership)
            for user, membership in zip(users, memberships)
        ]
        return self.candidates

    def close(self) -> None:
        """Stop accepting results from outstanding loads."""
        self._generation += 1

    def action_for(self, wallet_address: str) -> SignerAction:
        candidate = self._find(wallet_address)
        wallet = candidate.user.wallet_address
        if not wallet:
            return SignerAction.NO_WALLET
        if self._inflight.is_processing(wallet):
            return SignerAction.PROCESSING
        if candidate.membership is None:
            return SignerAction.UNKNOWN
        if candidate.membership.has(self.ledger_role):
            return SignerAction.ALREADY_ADDED
        if candidate.user.kyc_status is not KycStatus.VERIFIED:
            return SignerAction.KYC_NOT_VERIFIED
        return SignerAction.ADD

    async def grant(self, wallet_address: str) -> RoleMembership | None:
        """Grant this view's role to a candidate and return fresh membership."""
        self.context.require_admin()
        candidate = self._find(wallet_address)
        action = self.action_for(wallet_address)
        if action is SignerAction.PROCESSING:
            raise AlreadyProcessing(f"Grant already in progress for {wallet_address}")
        if action is SignerAction.ALREADY_ADDED:
            raise DuplicateGrant(f"{wallet_address} already holds {self.ledger_role.value}")
        if action is SignerAction.UNKNOWN:
            raise ValidationError("Role membership unknown. Reload before granting.")
        if action is SignerAction.NO_WALLET:
            raise ValidationError("User has no linked wallet")
        if action is SignerAction.KYC_NOT_VERIFIED:
            raise ValidationError("KYC must be verified before granting a signer role")

        wallet = candidate.user.wallet_address
        if not wallet:
            raise ValidationError("User has no linked wallet")
        with self._inflight.claim(wallet):
            try:
                await self.executor.add_signer(self.ledger_role, wallet)
            except TransactionReverted:
                membership = await self._refresh(candidate)
                if membership is not None and membership.has(self.ledger_role):
                    log.info("%s already held %s; grant resolved", wallet, self.ledger_role.value)
                    return membership
                raise
            except Exception:
                # every attempt ends with a fresh membership read
                await self._refresh(candidate)
                raise
            return await self._refresh(candidate)

    # --- Internal helpers ---
    def _find(self, wallet_address: str) -> SignerCandidate:
        wallet = normalize_wallet(wallet_address)
        for candidate in self._candidates:
            if wallet and candidate.user.wallet_address == wallet:
                return candidate
        raise ValidationError(f"No {self.role.value} candidate with wallet {wallet_address}")

    async def _lookup(self, wallet: str | None) -> RoleMembership | None:
        if not wallet:
            return None
        try:
            return await self.oracle.get_roles_of(wallet)
        except (RegistrarError, ValueError) as e:
            log.warning("Membership lookup failed for %s: %s", wallet, e)
            return None

    async def _refresh(self, candidate: SignerCandidate) -> RoleMembership | None:
        generation = self._generation
        membership = await self._lookup(candidate.user.wallet_address)
        if generation == self._generation:
            candidate.membership = membership
        return membership
