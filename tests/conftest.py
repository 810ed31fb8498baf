"""Shared fixtures: an admin session and ledger fakes."""

from __future__ import annotations

import pytest

from registrar.sdk.models import AdminSession, Role, User
from registrar.sdk.session import SessionContext
from tests.helpers import ADMIN_WALLET, FakeLedger


@pytest.fixture
def admin_user() -> User:
    return User(id="admin1", name="Admin", email="admin@example.com", wallet_address=ADMIN_WALLET, role=Role.ADMIN)


@pytest.fixture
def admin_session(admin_user: User) -> AdminSession:
    return AdminSession(wallet_address=ADMIN_WALLET, token="opaque-token", role=Role.ADMIN, user=admin_user)


@pytest.fixture
def context() -> SessionContext:
    """Unauthenticated session context."""
    return SessionContext()


@pytest.fixture
def admin_context(admin_session: AdminSession) -> SessionContext:
    """Session context holding a live admin session."""
    ctx = SessionContext()
    ctx._set(admin_session)
    return ctx


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()
