"""Identity directory client.

Async client for the user-directory REST backend: user records, KYC
submissions, admin OTP authentication and department registration.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from registrar.sdk.errors import BackendError, TransportError
from registrar.sdk.models import KycStatus, Role, User, normalize_wallet
from registrar.sdk.session import SessionContext

log = logging.getLogger(__name__)


class BearerAuth(httpx.Auth):
    """Attach the current session token to every request."""

    def __init__(self, context: SessionContext) -> None:
        self.context = context

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        token = self.context.token
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        yield request


class DirectoryClient:
    """High-level client for the user directory backend."""

    def __init__(self, http: httpx.AsyncClient) -> None:
        if http is None:
            raise ValueError("HTTP client is required")
        self.http = http

    @classmethod
    def create(
        cls,
        base_url: str,
        context: SessionContext,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> DirectoryClient:
        """Build a client whose requests carry the session bearer token."""
        http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            auth=BearerAuth(context),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )
        return cls(http)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def get_profile(self) -> User:
        """Current user (bearer authenticated)."""
        data = await self._request("GET", "/profile")
        return self._parse_user(data)

    async def list_pending_kyc(self) -> list[User]:
        """Submissions the backend wants a registrar to look at."""
        data = await self._request("GET", "/pending-kyc")
        return self._parse_users(data)

    async def set_kyc_status(self, user_id: str, status: KycStatus, reason: str | None = None) -> User:
        """Record a KYC decision and return the updated user."""
        if not user_id:
            raise ValueError("User ID required")
        body: dict[str, Any] = {"status": status.value}
        if reason:
            body["reason"] = reason
        data = await self._request("PATCH", f"/{quote(user_id, safe='')}/verify-kyc", json=body)
        log.info("KYC status for %s set to %s", user_id, status.value)
        return self._parse_user(data.get("user", data) if isinstance(data, dict) else data)

    async def list_users(self) -> list[User]:
        data = await self._request("GET", "/")
        return self._parse_users(data)

    async def users_by_role(self, role: Role) -> list[User]:
        users = await self.list_users()
        return [u for u in users if u.role is role]

    async def search_users(self, query: str) -> list[User]:
        """Substring search across name, email and wallet address."""
        query = query.strip().lower()
        if not query:
            return []
        data = await self._request("GET", "/search-user", params={"query": query})
        return self._parse_users(data)

    async def request_admin_otp(self, wallet_address: str) -> dict[str, Any]:
        """Ask the backend to send an OTP to the admin bound to ``wallet_address``."""
        wallet = normalize_wallet(wallet_address)
        if not wallet:
            raise ValueError("Wallet address required")
        data = await self._request("GET", f"/admin/{quote(wallet, safe='')}")
        if not isinstance(data, dict):
            raise BackendError(502, "Malformed OTP response")
        return data

    async def verify_admin_otp(self, wallet_address: str, otp: str) -> tuple[str, User]:
        """Exchange an OTP for ``(token, user)``."""
        wallet = normalize_wallet(wallet_address)
        data = await self._request("POST", "/admin/verify", json={"walletAddress": wallet, "otp": otp})
        if not isinstance(data, dict) or not data.get("token") or "user" not in data:
            raise BackendError(502, "Malformed OTP verification response")
        return data["token"], self._parse_user(data["user"])

    async def register_department_user(
        self, name: str, email: str, nic: str, wallet_address: str, role: Role
    ) -> User:
        body = {
            "name": name,
            "email": email,
            "nic": nic,
            "walletAddress": wallet_address,
            "role": role.value,
        }
        data = await self._request("POST", "/register-department-user", json=body)
        return self._parse_user(data.get("user", data) if isinstance(data, dict) else data)

    # --- Internal helpers ---
    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log.warning("%s %s failed: %s", method, path, e)
            raise TransportError(f"Backend unreachable: {e}") from e

        if response.is_error:
            raise BackendError(response.status_code, self._error_message(response))
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(response.status_code, "Backend returned invalid JSON") from e

    def _error_message(self, response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(payload, dict):
            return str(payload.get("message") or payload.get("error") or response.reason_phrase)
        return response.reason_phrase

    def _parse_user(self, data: Any) -> User:
        try:
            return User.model_validate(data)
        except PydanticValidationError as e:
            raise BackendError(502, f"Malformed user record: {e}") from e

    def _parse_users(self, data: Any) -> list[User]:
        if not isinstance(data, list):
            raise BackendError(502, "Expected a list of users")
        return [self._parse_user(item) for item in data]
