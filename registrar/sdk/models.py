"""Pydantic models for registrar console data structures.

Wire payloads from the user directory use camelCase and Mongo-style ``_id``;
models accept both the wire names and the Python field names.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from registrar.sdk.errors import ValidationError


def normalize_wallet(address: str | None) -> str | None:
    """Canonical wallet form: trimmed and lowercase, ``None`` when blank."""
    if address is None:
        return None
    address = address.strip()
    return address.lower() or None


class Role(str, Enum):
    """Directory roles. Values are the backend wire values."""
    PUBLIC_USER = "user"
    REGISTRAR = "registrar"
    ADMIN = "admin"
    SURVEYOR = "surveyor"
    NOTARY = "notary"
    VALUATION_INSTITUTION = "IVSL"

    @classmethod
    def _missing_(cls, value: object) -> Role | None:
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        return _ROLE_ALIASES.get(key)

    @property
    def is_department(self) -> bool:
        return self in DEPARTMENT_ROLES


_ROLE_ALIASES: dict[str, Role] = {
    "user": Role.PUBLIC_USER,
    "public-user": Role.PUBLIC_USER,
    "registrar": Role.REGISTRAR,
    "admin": Role.ADMIN,
    "surveyor": Role.SURVEYOR,
    "notary": Role.NOTARY,
    "ivsl": Role.VALUATION_INSTITUTION,
    "valuation-institution": Role.VALUATION_INSTITUTION,
}


class KycStatus(str, Enum):
    """KYC status. Only pending -> verified and pending -> rejected exist."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not KycStatus.PENDING


class LedgerRole(str, Enum):
    """Signer roles known to the registry contract."""
    NOTARY = "NOTARY"
    SURVEYOR = "SURVEYOR"
    IVSL = "IVSL"

    @property
    def code(self) -> int:
        """On-chain role code."""
        return LEDGER_ROLE_CODES[self]


LEDGER_ROLE_CODES: dict[LedgerRole, int] = {
    LedgerRole.NOTARY: 1,
    LedgerRole.SURVEYOR: 2,
    LedgerRole.IVSL: 3,
}

# Directory role -> ledger role. The only roles registerable and grantable here.
DEPARTMENT_ROLES: dict[Role, LedgerRole] = {
    Role.NOTARY: LedgerRole.NOTARY,
    Role.SURVEYOR: LedgerRole.SURVEYOR,
    Role.VALUATION_INSTITUTION: LedgerRole.IVSL,
}


class User(BaseModel):
    """User record as owned by the identity directory."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., validation_alias=AliasChoices("_id", "id"), description="Stable identifier")
    name: str = Field(default="", description="Display name")
    email: str = Field(default="", description="Contact email")
    nic: str = Field(default="", description="National identity code")
    wallet_address: str | None = Field(
        default=None,
        validation_alias=AliasChoices("walletAddress", "wallet_address"),
        description="Lowercase wallet address",
    )
    role: Role = Field(default=Role.PUBLIC_USER)
    kyc_status: KycStatus = Field(
        default=KycStatus.PENDING,
        validation_alias=AliasChoices("kycStatus", "kyc_status"),
    )
    kyc_document_hash: str | None = Field(
        default=None,
        validation_alias=AliasChoices("kycDocumentHash", "kyc_document_hash"),
    )
    kyc_documents: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("kycDocuments", "kyc_documents"),
        description="Document kind -> storage key",
    )
    created_at: datetime | None = Field(default=None, validation_alias=AliasChoices("createdAt", "created_at"))
    updated_at: datetime | None = Field(default=None, validation_alias=AliasChoices("updatedAt", "updated_at"))

    @field_validator("wallet_address", mode="before")
    @classmethod
    def _normalize_wallet(cls, v: str | None) -> str | None:
        return normalize_wallet(v)

    @field_validator("kyc_status", mode="before")
    @classmethod
    def _default_status(cls, v: object) -> object:
        return KycStatus.PENDING if v in (None, "") else v

    @field_validator("kyc_documents", mode="before")
    @classmethod
    def _drop_empty_documents(cls, v: object) -> object:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {k: ref for k, ref in v.items() if ref}
        return v


class RoleMembership(BaseModel):
    """On-chain signer roles held by one wallet."""

    notary: bool = False
    surveyor: bool = False
    ivsl: bool = False

    def has(self, role: LedgerRole) -> bool:
        return getattr(self, role.value.lower())

    @classmethod
    def from_roles(cls, roles: dict[LedgerRole, bool]) -> RoleMembership:
        return cls(**{role.value.lower(): granted for role, granted in roles.items()})


class AdminSession(BaseModel):
    """Elevated session bound to the wallet that answered the OTP challenge."""

    wallet_address: str
    token: str
    role: Role
    user: User
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at


class OtpChallenge(BaseModel):
    """Outstanding OTP challenge. ``issued_at`` is a monotonic clock reading."""

    wallet_address: str
    issued_at: float
    cooldown_seconds: int = 60

    def remaining(self, now: float) -> int:
        left = self.cooldown_seconds - (now - self.issued_at)
        return max(0, math.ceil(left))


class DepartmentRegistration(BaseModel):
    """Form data for onboarding a department user."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    nic: str
    wallet_address: str
    role: Role


class ReviewSnapshot(BaseModel):
    """Submissions as last seen by the review engine."""

    submissions: list[User] = Field(default_factory=list)
    stale: bool = False
    error: str | None = None


class RoleStats(BaseModel):
    """Verified/pending counts for one department role."""

    verified: int = 0
    pending: int = 0

    @property
    def compliance_percent(self) -> int:
        total = self.verified + self.pending
        return math.floor(self.verified / total * 100 + 0.5) if total else 0


class DepartmentStatistics(BaseModel):
    """Aggregate onboarding statistics, recomputed on every load."""

    by_role: dict[Role, RoleStats] = Field(default_factory=dict)
    recent: list[User] = Field(default_factory=list)


def parse_department_role(value: str | Role) -> Role:
    """Parse a department role name (``notary``, ``surveyor``, ``ivsl``...)."""
    try:
        role = Role(value)
    except ValueError:
        role = None
    if role not in DEPARTMENT_ROLES:
        choices = ", ".join(r.value for r in DEPARTMENT_ROLES)
        raise ValidationError(f"Unknown department role {value!r}. Choose one of: {choices}")
    return role
