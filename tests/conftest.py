"""Shared test fixtures for codex-accounts.

Provides free loopback ports, fake JWTs, mock token endpoints and an
isolated account store per test.
"""

from __future__ import annotations

import base64
import json
import socket
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from accounts.store import AccountStore


def make_jwt(claims: dict[str, Any]) -> str:
    """Build an unsigned JWT carrying the given claims."""

    def _segment(data: dict[str, Any]) -> str:
        raw = json.dumps(data).encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    return f"{_segment({'alg': 'none', 'typ': 'JWT'})}.{_segment(claims)}.signature"


def make_id_token(email: str = "user@example.com", account_id: str | None = "acct-123") -> str:
    claims: dict[str, Any] = {"email": email}
    if account_id is not None:
        claims["https://api.openai.com/auth"] = {"chatgpt_account_id": account_id}
    return make_jwt(claims)


def token_payload(
    access_token: str = "new-access",
    refresh_token: str | None = "new-refresh",
    id_token: str | None = None,
    expires_in: int | None = 3600,
) -> dict[str, Any]:
    """Build a token endpoint JSON body."""
    data: dict[str, Any] = {"access_token": access_token, "token_type": "Bearer"}
    if refresh_token is not None:
        data["refresh_token"] = refresh_token
    if id_token is not None:
        data["id_token"] = id_token
    if expires_in is not None:
        data["expires_in"] = expires_in
    return data


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def free_port() -> int:
    """A TCP port that was free on 127.0.0.1 a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def accounts_file(tmp_path: Path) -> Path:
    return tmp_path / "accounts" / "accounts.json"


@pytest.fixture
def store(accounts_file: Path) -> AccountStore:
    return AccountStore(accounts_file)


@pytest.fixture
def loopback_client() -> httpx.AsyncClient:
    """Client for talking to the local callback server, ignoring proxy env vars."""
    return httpx.AsyncClient(trust_env=False, timeout=5.0)
