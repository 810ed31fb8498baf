"""Test the directory REST client against a mocked transport."""

from __future__ import annotations

import json

import httpx
import pytest

from registrar.sdk.directory import DirectoryClient
from registrar.sdk.errors import BackendError, TransportError
from registrar.sdk.models import KycStatus, Role
from registrar.sdk.session import SessionContext

BASE_URL = "http://backend.test/api/users"


def _user(user_id: str, role: str = "user", **extra: object) -> dict[str, object]:
    return {"_id": user_id, "name": f"User {user_id}", "email": f"{user_id}@example.com",
            "walletAddress": f"0x{user_id.upper()}", "role": role, "kycStatus": "pending", **extra}


class Recorder:
    """Mock transport handler that records requests and replays responses."""

    def __init__(self, routes: dict[tuple[str, str], httpx.Response]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key not in self.routes:
            return httpx.Response(404, json={"message": "Not found"})
        return self.routes[key]


def _client(recorder: Recorder, context: SessionContext | None = None) -> DirectoryClient:
    return DirectoryClient.create(
        BASE_URL, context or SessionContext(), transport=httpx.MockTransport(recorder)
    )


def test_client_requires_http() -> None:
    with pytest.raises(ValueError, match="HTTP client is required"):
        DirectoryClient(None)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_bearer_token_attached(admin_context: SessionContext) -> None:
    recorder = Recorder({("GET", "/api/users/profile"): httpx.Response(200, json=_user("admin1", "admin"))})
    client = _client(recorder, admin_context)

    user = await client.get_profile()

    assert user.role is Role.ADMIN
    assert recorder.requests[0].headers["Authorization"] == "Bearer opaque-token"
    await client.aclose()


@pytest.mark.asyncio
async def test_no_token_no_header(context: SessionContext) -> None:
    recorder = Recorder({("GET", "/api/users/pending-kyc"): httpx.Response(200, json=[])})
    client = _client(recorder, context)

    assert await client.list_pending_kyc() == []
    assert "Authorization" not in recorder.requests[0].headers
    await client.aclose()


@pytest.mark.asyncio
async def test_list_pending_kyc_normalizes_wallets() -> None:
    recorder = Recorder({("GET", "/api/users/pending-kyc"): httpx.Response(200, json=[_user("a1"), _user("b2")])})
    client = _client(recorder)

    users = await client.list_pending_kyc()

    assert [u.id for u in users] == ["a1", "b2"]
    assert users[0].wallet_address == "0xa1"
    await client.aclose()


@pytest.mark.asyncio
async def test_set_kyc_status_sends_reason() -> None:
    updated = _user("u1", kycStatus="rejected")
    recorder = Recorder({
        ("PATCH", "/api/users/u1/verify-kyc"): httpx.Response(200, json={"message": "ok", "user": updated}),
    })
    client = _client(recorder)

    user = await client.set_kyc_status("u1", KycStatus.REJECTED, "Blurry NIC scan")

    assert user.kyc_status is KycStatus.REJECTED
    assert json.loads(recorder.requests[0].content) == {"status": "rejected", "reason": "Blurry NIC scan"}
    await client.aclose()


@pytest.mark.asyncio
async def test_set_kyc_status_without_reason() -> None:
    recorder = Recorder({
        ("PATCH", "/api/users/u1/verify-kyc"): httpx.Response(200, json={"user": _user("u1", kycStatus="verified")}),
    })
    client = _client(recorder)

    await client.set_kyc_status("u1", KycStatus.VERIFIED)

    assert json.loads(recorder.requests[0].content) == {"status": "verified"}
    await client.aclose()


@pytest.mark.asyncio
async def test_users_by_role_filters() -> None:
    recorder = Recorder({
        ("GET", "/api/users/"): httpx.Response(200, json=[_user("n1", "notary"), _user("s1", "surveyor"),
                                                          _user("i1", "IVSL")]),
    })
    client = _client(recorder)

    notaries = await client.users_by_role(Role.NOTARY)
    valuers = await client.users_by_role(Role.VALUATION_INSTITUTION)

    assert [u.id for u in notaries] == ["n1"]
    assert [u.id for u in valuers] == ["i1"]
    await client.aclose()


@pytest.mark.asyncio
async def test_search_users_lowercases_query() -> None:
    recorder = Recorder({("GET", "/api/users/search-user"): httpx.Response(200, json=[_user("a1")])})
    client = _client(recorder)

    assert await client.search_users("   ") == []
    assert recorder.requests == []

    await client.search_users("  0xABC ")
    assert recorder.requests[0].url.params["query"] == "0xabc"
    await client.aclose()


@pytest.mark.asyncio
async def test_request_and_verify_admin_otp() -> None:
    recorder = Recorder({
        ("GET", "/api/users/admin/0xabc"): httpx.Response(200, json={"status": "otp_sent"}),
        ("POST", "/api/users/admin/verify"): httpx.Response(
            200, json={"token": "jwt-token", "user": _user("admin1", "admin", walletAddress="0xABC")}
        ),
    })
    client = _client(recorder)

    assert await client.request_admin_otp("0xABC") == {"status": "otp_sent"}
    token, user = await client.verify_admin_otp("0xABC", "123456")

    assert token == "jwt-token"
    assert user.wallet_address == "0xabc"
    assert json.loads(recorder.requests[1].content) == {"walletAddress": "0xabc", "otp": "123456"}
    await client.aclose()


@pytest.mark.asyncio
async def test_verify_admin_otp_malformed_response() -> None:
    recorder = Recorder({("POST", "/api/users/admin/verify"): httpx.Response(200, json={"user": {}})})
    client = _client(recorder)

    with pytest.raises(BackendError, match="Malformed OTP verification response"):
        await client.verify_admin_otp("0xabc", "123456")
    await client.aclose()


@pytest.mark.asyncio
async def test_register_department_user_payload() -> None:
    recorder = Recorder({
        ("POST", "/api/users/register-department-user"): httpx.Response(
            201, json={"user": _user("d1", "surveyor")}
        ),
    })
    client = _client(recorder)

    user = await client.register_department_user("Sam", "sam@example.com", "901234567V", "0xabc", Role.SURVEYOR)

    assert user.role is Role.SURVEYOR
    assert json.loads(recorder.requests[0].content) == {
        "name": "Sam", "email": "sam@example.com", "nic": "901234567V",
        "walletAddress": "0xabc", "role": "surveyor",
    }
    await client.aclose()


@pytest.mark.asyncio
async def test_error_status_becomes_backend_error() -> None:
    recorder = Recorder({
        ("GET", "/api/users/pending-kyc"): httpx.Response(403, json={"message": "Admins only"}),
    })
    client = _client(recorder)

    with pytest.raises(BackendError) as excinfo:
        await client.list_pending_kyc()
    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "Admins only"
    await client.aclose()


@pytest.mark.asyncio
async def test_malformed_user_list() -> None:
    recorder = Recorder({("GET", "/api/users/pending-kyc"): httpx.Response(200, json={"users": []})})
    client = _client(recorder)

    with pytest.raises(BackendError, match="Expected a list"):
        await client.list_pending_kyc()
    await client.aclose()


@pytest.mark.asyncio
async def test_network_failure_becomes_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = DirectoryClient.create(BASE_URL, SessionContext(), transport=httpx.MockTransport(handler))

    with pytest.raises(TransportError, match="Backend unreachable"):
        await client.list_users()
    await client.aclose()
