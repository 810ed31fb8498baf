"""Error taxonomy for the registrar console.

Every failure carries a stable code so front ends can map it to a message.
Local validation failures never touch the network and are never retried.
"""

from __future__ import annotations

from typing import Any


class RegistrarError(Exception):
    """Base class for all registrar console errors."""

    code: str = "REG_INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details if details is not None else {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for display or API responses."""
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(RegistrarError, ValueError):
    """Local input validation failed."""

    code = "REG_VALIDATION"


class InvalidFormat(ValidationError):
    """Input has the wrong shape (e.g. OTP is not six digits)."""

    code = "REG_INVALID_FORMAT"


class CooldownActive(ValidationError):
    """OTP resend attempted before the cooldown elapsed."""

    code = "REG_COOLDOWN_ACTIVE"

    def __init__(self, remaining: int) -> None:
        super().__init__(f"Resend available in {remaining}s", {"remaining": remaining})
        self.remaining = remaining


class AlreadyProcessing(ValidationError):
    """A decision or grant for the same subject is still in flight."""

    code = "REG_ALREADY_PROCESSING"


class SessionRequired(RegistrarError):
    """Operation needs an authenticated, non-expired admin session."""

    code = "REG_SESSION_REQUIRED"


class NotRegisteredAdmin(RegistrarError):
    """Wallet is not registered as an admin wallet."""

    code = "REG_NOT_ADMIN"


class InvalidOtp(RegistrarError):
    """OTP code was wrong or expired."""

    code = "REG_INVALID_OTP"


class TransportError(RegistrarError):
    """Backend or ledger node could not be reached."""

    code = "REG_TRANSPORT"


class BackendError(RegistrarError):
    """Backend answered with an error status."""

    code = "REG_BACKEND"

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message, {"status_code": status_code})
        self.status_code = status_code


class LedgerError(RegistrarError):
    """Base class for ledger transaction failures."""

    code = "REG_LEDGER"


class TransactionRejected(LedgerError):
    """Signing was declined or no signer is available."""

    code = "REG_TX_REJECTED"


class TransactionReverted(LedgerError):
    """Ledger rejected the transaction (rule violation, unauthorized caller)."""

    code = "REG_TX_REVERTED"


class DuplicateGrant(LedgerError):
    """Role is already granted to the wallet."""

    code = "REG_DUPLICATE_GRANT"
