"""Composition root for the registrar console.

Owns the HTTP clients, the session context and every component that needs
them. Components receive the session context explicitly.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import TypeVar

import httpx

from registrar.cli.config import RegistrarConfig, configure_logging, create_role_ledger
from registrar.sdk.directory import DirectoryClient
from registrar.sdk.files import FileResolver
from registrar.sdk.kyc import KycReviewEngine
from registrar.sdk.ledger import AlgorandRoleLedger
from registrar.sdk.models import Role
from registrar.sdk.onboarding import DepartmentOnboarding
from registrar.sdk.session import AdminSessionGate, FileTokenStore, SessionContext, TokenStore
from registrar.sdk.signers import SignerRequestsView

T = TypeVar("T")


class RegistrarConsole:
    """Wires directory, ledger and session into the console workflows."""

    def __init__(
        self,
        config: RegistrarConfig,
        store: TokenStore | None = None,
        ledger: AlgorandRoleLedger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.context = SessionContext()
        self.store = store if store is not None else FileTokenStore(config.session_file)
        self.directory = DirectoryClient.create(
            config.backend_url, self.context, timeout=config.http_timeout, transport=transport
        )
        self._files_http = httpx.AsyncClient(timeout=config.http_timeout, transport=transport)
        self.files = FileResolver(self._files_http, config.file_service_url)
        self.gate = AdminSessionGate(
            self.directory, self.context, self.store,
            cooldown_seconds=config.otp_cooldown_seconds, clock=clock,
        )
        self.kyc = KycReviewEngine(self.directory, self.files, self.context)
        self.onboarding = DepartmentOnboarding(self.directory, self.context)
        self._ledger = ledger
        self._views: dict[Role, SignerRequestsView] = {}

    @property
    def ledger(self) -> AlgorandRoleLedger:
        """Role oracle/executor, created on first use."""
        if self._ledger is None:
            self._ledger = create_role_ledger(self.config)
        return self._ledger

    def signer_view(self, role: Role) -> SignerRequestsView:
        """Signer request view for a department role (one per console)."""
        if role not in self._views:
            self._views[role] = SignerRequestsView(
                role, self.directory, self.ledger, self.ledger, self.context
            )
        return self._views[role]

    async def __aenter__(self) -> RegistrarConsole:
        self.gate.restore()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        for view in self._views.values():
            view.close()
        await self.directory.aclose()
        await self._files_http.aclose()


def open_console(config: RegistrarConfig) -> RegistrarConsole:
    """Console factory used by CLI commands."""
    return RegistrarConsole(config)


def run_with_console(action: Callable[[RegistrarConsole], Awaitable[T]]) -> T:
    """Load configuration, open a console and run one async action in it."""
    config = RegistrarConfig()
    configure_logging(config)

    async def _main() -> T:
        async with open_console(config) as registrar:
            return await action(registrar)

    return asyncio.run(_main())
