"""Admin session gate.

Binds a connected wallet to an elevated, backend-issued session through an OTP
challenge. The wallet establishes who is acting; the OTP establishes that the
session is elevated. A session is only valid for the wallet that requested the
challenge.
"""

from __future__ import annotations

import logging
import os
import re
import time
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import jwt
from pydantic import ValidationError as PydanticValidationError

from registrar.sdk.errors import (
    BackendError,
    CooldownActive,
    InvalidFormat,
    InvalidOtp,
    NotRegisteredAdmin,
    SessionRequired,
    ValidationError,
)
from registrar.sdk.models import AdminSession, OtpChallenge, Role, normalize_wallet

if TYPE_CHECKING:
    from registrar.sdk.directory import DirectoryClient

log = logging.getLogger(__name__)

OTP_PATTERN = re.compile(r"[0-9]{6}")
DEFAULT_COOLDOWN_SECONDS = 60


class SessionContext:
    """Holder of the current admin session.

    Created by the composition root and passed to every component that needs
    it. Only :class:`AdminSessionGate` writes to it.
    """

    def __init__(self) -> None:
        self._session: AdminSession | None = None

    @property
    def session(self) -> AdminSession | None:
        return self._session

    @property
    def token(self) -> str | None:
        return self._session.token if self._session else None

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None and not self._session.is_expired()

    def require_admin(self) -> AdminSession:
        """Return the session or raise when mutating operations are not allowed."""
        session = self._session
        if session is None:
            raise SessionRequired("Admin session required. Log in first.")
        if session.is_expired():
            raise SessionRequired("Admin session expired. Log in again.")
        if session.role is not Role.ADMIN:
            raise SessionRequired("Session does not hold the admin role.")
        return session

    def _set(self, session: AdminSession) -> None:
        self._session = session

    def _clear(self) -> None:
        self._session = None


class TokenStore(Protocol):
    """Durable storage for the admin session."""

    def load(self) -> AdminSession | None: ...

    def save(self, session: AdminSession) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    """Process-local token store."""

    def __init__(self) -> None:
        self._session: AdminSession | None = None

    def load(self) -> AdminSession | None:
        return self._session

    def save(self, session: AdminSession) -> None:
        self._session = session

    def clear(self) -> None:
        self._session = None


class FileTokenStore:
    """JSON file token store, readable by the owner only."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> AdminSession | None:
        if not self.path.exists():
            return None
        try:
            return AdminSession.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, PydanticValidationError) as e:
            log.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return None

    def save(self, session: AdminSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        # the open mode applies to new files only
        os.fchmod(fd, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(session.model_dump_json())

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class GateState(str, Enum):
    DISCONNECTED = "disconnected"
    WALLET_CONNECTED = "wallet_connected"
    OTP_REQUESTED = "otp_requested"
    AUTHENTICATED = "authenticated"


def token_expiry(token: str) -> datetime | None:
    """Read the ``exp`` claim without verifying the signature.

    Opaque (non-JWT) tokens have no local expiry.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None
    exp = claims.get("exp")
    if exp is None:
        return None
    return datetime.fromtimestamp(float(exp), tz=timezone.utc)


class AdminSessionGate:
    """OTP challenge state machine guarding all mutating operations."""

    def __init__(
        self,
        directory: DirectoryClient,
        context: SessionContext,
        store: TokenStore,
        cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.directory = directory
        self.context = context
        self.store = store
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._state = GateState.DISCONNECTED
        self._wallet: str | None = None
        self._challenge: OtpChallenge | None = None

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def wallet(self) -> str | None:
        return self._wallet

    @property
    def challenge(self) -> OtpChallenge | None:
        return self._challenge

    @property
    def resend_cooldown(self) -> int:
        """Seconds until a resend is allowed; advisory only."""
        if self._challenge is None:
            return 0
        return self._challenge.remaining(self._clock())

    def connect_wallet(self, wallet_address: str) -> None:
        wallet = normalize_wallet(wallet_address)
        if not wallet:
            raise ValidationError("Wallet address required")
        if self._wallet != wallet:
            # a session or challenge never carries over to another wallet
            self._drop_session()
            self._challenge = None
            self._state = GateState.WALLET_CONNECTED
        self._wallet = wallet
        log.info("Wallet connected: %s", wallet)

    async def request_challenge(self, wallet_address: str) -> OtpChallenge:
        """Ask the backend to email an OTP for the connected admin wallet."""
        wallet = self._require_connected(wallet_address)
        if self._challenge is not None and self.resend_cooldown > 0:
            raise CooldownActive(self.resend_cooldown)
        return await self._issue_challenge(wallet)

    async def resend_challenge(self, wallet_address: str) -> OtpChallenge:
        """Re-issue the OTP once the cooldown has elapsed."""
        wallet = self._require_connected(wallet_address)
        remaining = self.resend_cooldown
        if remaining > 0:
            raise CooldownActive(remaining)
        return await self._issue_challenge(wallet)

    async def verify_challenge(self, wallet_address: str, code: str) -> AdminSession:
        """Exchange the OTP for an admin session."""
        if not isinstance(code, str) or not OTP_PATTERN.fullmatch(code):
            raise InvalidFormat("OTP must be exactly 6 digits")
        wallet = self._require_connected(wallet_address)
        if self._state is not GateState.OTP_REQUESTED or self._challenge is None:
            raise ValidationError("Request an OTP before verifying")
        if self._challenge.wallet_address != wallet:
            raise ValidationError("OTP was issued for a different wallet")

        try:
            token, user = await self.directory.verify_admin_otp(wallet, code)
        except BackendError as e:
            if e.status_code in (400, 401, 403, 404):
                log.info("OTP rejected for %s", wallet)
                raise InvalidOtp(e.message or "Invalid OTP. Try again.") from e
            raise

        if user.role is not Role.ADMIN:
            raise NotRegisteredAdmin(f"Wallet {wallet} is not registered as admin")
        if user.wallet_address and user.wallet_address != wallet:
            raise NotRegisteredAdmin("Session user does not match the challenged wallet")

        session = AdminSession(
            wallet_address=wallet,
            token=token,
            role=user.role,
            user=user,
            expires_at=token_expiry(token),
        )
        self.store.save(session)
        self.context._set(session)
        self._challenge = None
        self._state = GateState.AUTHENTICATED
        log.info("Admin session established for %s", wallet)
        return session

    def abandon_challenge(self) -> None:
        """Give up on the outstanding OTP; the cooldown still applies to resends."""
        if self._state is GateState.OTP_REQUESTED:
            self._state = GateState.WALLET_CONNECTED

    def disconnect_session(self) -> None:
        """Log out and forget the wallet."""
        self._drop_session()
        self._wallet = None
        self._challenge = None
        self._state = GateState.DISCONNECTED
        log.info("Admin session disconnected")

    def restore(self) -> AdminSession | None:
        """Reload a persisted session, discarding it when expired."""
        session = self.store.load()
        if session is None:
            return None
        if session.is_expired() or session.role is not Role.ADMIN:
            log.info("Discarding stored session for %s", session.wallet_address)
            self.store.clear()
            return None
        self.context._set(session)
        self._wallet = session.wallet_address
        self._state = GateState.AUTHENTICATED
        return session

    # --- Internal helpers ---
    def _require_connected(self, wallet_address: str) -> str:
        wallet = normalize_wallet(wallet_address)
        if not wallet:
            raise ValidationError("Wallet address required")
        if self._state is GateState.DISCONNECTED or self._wallet is None:
            raise ValidationError("Connect a wallet first")
        if wallet != self._wallet:
            raise ValidationError("Wallet does not match the connected wallet")
        return wallet

    async def _issue_challenge(self, wallet: str) -> OtpChallenge:
        try:
            result = await self.directory.request_admin_otp(wallet)
        except BackendError as e:
            if e.status_code in (401, 403, 404):
                raise NotRegisteredAdmin(f"Wallet {wallet} is not registered as admin") from e
            raise
        if result.get("status") != "otp_sent":
            raise NotRegisteredAdmin(f"Wallet {wallet} is not registered as admin")

        self._challenge = OtpChallenge(
            wallet_address=wallet,
            issued_at=self._clock(),
            cooldown_seconds=self.cooldown_seconds,
        )
        self._state = GateState.OTP_REQUESTED
        log.info("OTP sent for %s", wallet)
        return self._challenge

    def _drop_session(self) -> None:
        self.store.clear()
        self.context._clear()
