"""On-chain role oracle and role grant executor.

Bridges directory wallets to the registry roles application on Algorand.
Wallet addresses are kept lowercase off-chain; Algorand addresses are base32,
so upper-casing at this boundary restores the on-chain form losslessly.

The Algorand SDK and Beaker client are synchronous; calls run in worker
threads so independent lookups can proceed concurrently on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol
from urllib.error import URLError

from algosdk import encoding, transaction
from algosdk.atomic_transaction_composer import AccountTransactionSigner
from algosdk.error import (
    AlgodHTTPError,
    ConfirmationTimeoutError,
    KMDHTTPError,
    TransactionRejectedError,
)
from algosdk.v2client import algod
from beaker.client import ApplicationClient, LogicException

from registrar.contracts.registry import ROLE_BOX_PREFIX, get_app
from registrar.sdk.errors import (
    LedgerError,
    TransactionRejected,
    TransactionReverted,
    TransportError,
    ValidationError,
)
from registrar.sdk.models import LedgerRole, RoleMembership, normalize_wallet

log = logging.getLogger(__name__)

CONFIRMATION_ROUNDS = 4
_REVERT_MARKERS = ("logic eval error", "rejected by logic", "assert failed", "err opcode")


class RoleOracle(Protocol):
    async def get_roles_of(self, wallet_address: str) -> RoleMembership: ...


class RoleGrantExecutor(Protocol):
    async def add_signer(self, role: LedgerRole, wallet_address: str) -> str: ...


def to_chain_address(wallet_address: str) -> str:
    """Convert a normalized directory wallet to its Algorand form."""
    wallet = normalize_wallet(wallet_address)
    if not wallet:
        raise ValidationError("Wallet address required")
    address = wallet.upper()
    if not encoding.is_valid_address(address):
        raise ValidationError(f"Not a valid Algorand address: {wallet_address}")
    return address


def role_box_name(role: LedgerRole, wallet_address: str) -> bytes:
    """Box name holding the (role, wallet) membership record."""
    address = to_chain_address(wallet_address)
    return ROLE_BOX_PREFIX + bytes([role.code]) + encoding.decode_address(address)


class AlgorandRoleLedger:
    """Role oracle and grant executor backed by the registry roles app."""

    def __init__(self, algod_client: algod.AlgodClient, app_id: int | None = None):
        if not algod_client:
            raise ValueError("Algod client is required")

        self.algod_client = algod_client
        self.app_id = app_id
        self.signer: AccountTransactionSigner | None = None
        self.sender: str | None = None

    def set_app_id(self, app_id: int) -> None:
        if app_id <= 0:
            raise ValueError("App ID must be positive")
        self.app_id = app_id

    def set_signer(self, signer: AccountTransactionSigner, sender: str) -> None:
        """Set transaction signer and sender address."""
        self.signer = signer
        self.sender = sender

    async def get_roles_of(self, wallet_address: str) -> RoleMembership:
        """Read all signer roles held by ``wallet_address``."""
        if not self.app_id:
            raise LedgerError("App ID not set")
        boxes = {role: role_box_name(role, wallet_address) for role in LedgerRole}
        flags = await asyncio.gather(
            *(asyncio.to_thread(self._box_exists, box) for box in boxes.values())
        )
        return RoleMembership.from_roles(dict(zip(boxes, flags)))

    async def add_signer(self, role: LedgerRole, wallet_address: str) -> str:
        """Grant ``role`` to ``wallet_address`` and return the transaction ID."""
        if not self.app_id:
            raise LedgerError("App ID not set")
        if not self.signer or not self.sender:
            raise TransactionRejected("No signer available to authorize the grant")

        address = to_chain_address(wallet_address)
        tx_id = await asyncio.to_thread(self._submit_add_signer, role, address)
        log.info("Granted %s to %s in tx %s", role.value, wallet_address, tx_id)
        return tx_id

    # --- Internal helpers ---
    def _create_application_client(self) -> ApplicationClient:
        """Create ApplicationClient for blockchain operations."""
        if not self.app_id:
            raise LedgerError("App ID not set")
        return ApplicationClient(
            self.algod_client, app=get_app(), app_id=self.app_id, sender=self.sender, signer=self.signer
        )

    def _box_exists(self, box_name: bytes) -> bool:
        try:
            self.algod_client.application_box_by_name(self.app_id, box_name)
            return True
        except AlgodHTTPError as e:
            if e.code == 404:
                return False
            raise TransportError(f"Algod box lookup failed: {e}") from e
        except (URLError, OSError) as e:
            raise TransportError(f"Algod unreachable: {e}") from e

    def _submit_add_signer(self, role: LedgerRole, address: str) -> str:
        """Submit the add_signer call and wait for confirmation."""
        client = self._create_application_client()
        box = (self.app_id, role_box_name(role, address))
        try:
            result = client.call("add_signer", role=role.code, account=address, boxes=[box])
            transaction.wait_for_confirmation(self.algod_client, result.tx_id, CONFIRMATION_ROUNDS)
        except LogicException as e:
            raise TransactionReverted(f"Grant reverted: {e}") from e
        except TransactionRejectedError as e:
            raise TransactionReverted(f"Grant rejected by the pool: {e}") from e
        except ConfirmationTimeoutError as e:
            raise TransportError(f"Grant not confirmed: {e}") from e
        except KMDHTTPError as e:
            raise TransactionRejected(f"Wallet declined to sign: {e}") from e
        except AlgodHTTPError as e:
            if any(marker in str(e).lower() for marker in _REVERT_MARKERS):
                raise TransactionReverted(f"Grant reverted: {e}") from e
            raise TransportError(f"Algod rejected submission: {e}") from e
        except (URLError, OSError) as e:
            raise TransportError(f"Algod unreachable: {e}") from e
        return result.tx_id
