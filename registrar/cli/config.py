"""Registrar console configuration using pydantic-settings.

Backend and file-service endpoints, Algod client setup for the registry roles
application, signer key management and session persistence.
"""

from __future__ import annotations

import logging
from pathlib import Path

from algosdk import account, mnemonic
from algosdk.atomic_transaction_composer import AccountTransactionSigner
from algosdk.v2client.algod import AlgodClient
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.logging import RichHandler

from registrar.sdk.ledger import AlgorandRoleLedger


class RegistrarConfig(BaseSettings):
    """Registrar console configuration using pydantic-settings BaseSettings."""

    model_config = SettingsConfigDict(
        env_prefix='REGISTRAR_',
        env_file='.env',
        env_file_encoding='utf-8',
        secrets_dir='/run/secrets',
        extra='ignore',
    )

    backend_url: str = Field(
        default="http://localhost:5000/api/users",
        description="User directory backend base URL"
    )
    file_service_url: str = Field(
        default="http://localhost:6000/ipfs/files",
        description="File service base URL for document references"
    )
    http_timeout: float = Field(
        default=15.0,
        description="HTTP timeout in seconds"
    )
    algod_url: str = Field(
        default="http://localhost:4001",
        description="Algorand node URL"
    )
    algod_token: str = Field(
        default="aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa",
        description="Algorand node API token"
    )
    app_id: int | None = Field(
        default=None,
        description="Deployed registry roles application ID"
    )
    mnemonic: str | None = Field(
        default=None,
        description="Registrar account mnemonic for signing role grants"
    )
    session_file: Path = Field(
        default=Path.home() / ".registrar" / "session.json",
        description="Where the admin session token is kept between runs"
    )
    otp_cooldown_seconds: int = Field(
        default=60,
        description="OTP resend cooldown"
    )
    log_level: str = Field(
        default="WARNING",
        description="Console log level"
    )

    @field_validator('app_id')
    @classmethod
    def validate_app_id(cls, v: int | None) -> int | None:
        """Validate app ID is positive if provided."""
        if v is not None and v <= 0:
            raise ValueError("App ID must be positive")
        return v

    @field_validator('http_timeout')
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("HTTP timeout must be positive")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


def configure_logging(config: RegistrarConfig) -> None:
    """Route library logging through rich at the configured level."""
    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=False, show_path=False)],
        force=True,
    )


def create_algod_client(config: RegistrarConfig) -> AlgodClient:
    """Create Algod client from configuration."""
    return AlgodClient(config.algod_token, config.algod_url)


def create_signer(config: RegistrarConfig) -> tuple[AccountTransactionSigner, str]:
    """Create transaction signer from mnemonic."""
    if not config.mnemonic:
        raise ValueError("Mnemonic required. Set REGISTRAR_MNEMONIC environment variable.")

    try:
        private_key = mnemonic.to_private_key(config.mnemonic)
        address = account.address_from_private_key(private_key)
        return AccountTransactionSigner(private_key), address
    except Exception as e:
        raise ValueError(f"Invalid mnemonic: {e}")


def validate_ledger_config(config: RegistrarConfig) -> None:
    """Validate configuration completeness for role grants."""
    if not config.app_id:
        raise ValueError("App ID required. Set REGISTRAR_APP_ID environment variable.")
    if not config.mnemonic:
        raise ValueError("Mnemonic required. Set REGISTRAR_MNEMONIC environment variable.")


def create_role_ledger(config: RegistrarConfig) -> AlgorandRoleLedger:
    """Role oracle/executor for the configured app; signer attached when available."""
    ledger = AlgorandRoleLedger(create_algod_client(config), config.app_id)
    if config.mnemonic:
        signer, sender = create_signer(config)
        ledger.set_signer(signer, sender)
    return ledger
