"""Tests for the login API (start, callback, complete)."""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from codex_oauth.errors import CallbackTimeout, LoginExpiredOrNotStarted, PortBindFailure, StateMismatch
from codex_oauth.login import LoginFlow
from codex_oauth.notifications import OAUTH_CALLBACK_RECEIVED, EventBus
from tests.conftest import make_id_token, mock_client, token_payload


def _query(url: str) -> dict[str, str]:
    # Values are sent raw; split manually instead of parse_qs to keep them intact
    return dict(part.split("=", 1) for part in urlsplit(url).query.split("&"))


def _token_endpoint(seen: list[dict[str, str]]):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append({k: v[0] for k, v in parse_qs(request.content.decode("ascii")).items()})
        return httpx.Response(200, json=token_payload(id_token=make_id_token()))

    return handler


async def _send_callback(port: int, query: str) -> httpx.Response:
    async with httpx.AsyncClient(trust_env=False, timeout=5.0) as client:
        return await client.get(f"http://127.0.0.1:{port}/auth/callback?{query}")


class TestLoginFlow:
    @pytest.mark.asyncio
    async def test_full_login(self, free_port: int) -> None:
        seen: list[dict[str, str]] = []
        received: list[Any] = []
        bus = EventBus()
        bus.subscribe(OAUTH_CALLBACK_RECEIVED, received.append)

        async with mock_client(_token_endpoint(seen)) as http_client:
            flow = LoginFlow(notifier=bus, port=free_port, evict_port=False, http_client=http_client)
            try:
                url = await flow.start_login()
                params = _query(url)
                state = params["state"]
                assert flow.registry.peek_state() == state
                assert params["redirect_uri"] == f"http://localhost:{free_port}/auth/callback"

                response = await _send_callback(free_port, f"code=abc123&state={state}")
                assert response.status_code == 200

                code = await flow.wait_for_code()
                assert code == "abc123"
                assert received == ["abc123"]

                tokens = await flow.complete_login(code)
            finally:
                await flow.close()

        assert tokens.access_token == "new-access"
        assert seen[0]["code"] == "abc123"
        assert seen[0]["redirect_uri"] == f"http://localhost:{free_port}/auth/callback"
        assert seen[0]["code_verifier"]

    @pytest.mark.asyncio
    async def test_state_is_regenerated_per_login(self, free_port: int) -> None:
        flow = LoginFlow(port=free_port, evict_port=False)
        try:
            first = _query(await flow.start_login())["state"]
            second = _query(await flow.start_login())["state"]
        finally:
            await flow.close()

        assert first != second

    @pytest.mark.asyncio
    async def test_complete_twice_fails(self, free_port: int) -> None:
        async with mock_client(_token_endpoint([])) as http_client:
            flow = LoginFlow(port=free_port, evict_port=False, http_client=http_client)
            try:
                await flow.start_login()
                await flow.complete_login("abc123")
                with pytest.raises(LoginExpiredOrNotStarted):
                    await flow.complete_login("abc123")
            finally:
                await flow.close()

    @pytest.mark.asyncio
    async def test_complete_without_start(self) -> None:
        flow = LoginFlow(evict_port=False)
        with pytest.raises(LoginExpiredOrNotStarted):
            await flow.complete_login("abc123")

    @pytest.mark.asyncio
    async def test_wait_without_start(self) -> None:
        with pytest.raises(LoginExpiredOrNotStarted):
            await LoginFlow(evict_port=False).wait_for_code()

    @pytest.mark.asyncio
    async def test_second_login_invalidates_first(self, free_port: int) -> None:
        flow = LoginFlow(port=free_port, evict_port=False)
        try:
            first_state = _query(await flow.start_login())["state"]
            second_state = _query(await flow.start_login())["state"]
            assert flow.registry.peek_state() == second_state

            # The first login's redirect now reaches the second login's listener
            response = await _send_callback(free_port, f"code=first-code&state={first_state}")
            assert response.status_code == 400

            with pytest.raises(StateMismatch):
                await flow.wait_for_code()
            assert not flow.registry.has_pending()
        finally:
            await flow.close()

    @pytest.mark.asyncio
    async def test_port_bind_failure_leaves_nothing_pending(self, free_port: int) -> None:
        import socket

        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", free_port))
        blocker.listen(1)
        try:
            flow = LoginFlow(port=free_port, evict_port=False)
            with pytest.raises(PortBindFailure):
                await flow.start_login()
            assert not flow.registry.has_pending()
        finally:
            blocker.close()

    @pytest.mark.asyncio
    async def test_failed_restart_drops_previous_login(self, free_port: int) -> None:
        import socket

        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        flow = LoginFlow(port=free_port, evict_port=False)
        try:
            await flow.start_login()
            assert flow.registry.has_pending()

            flow.port = blocker.getsockname()[1]
            with pytest.raises(PortBindFailure):
                await flow.start_login()

            assert not flow.registry.has_pending()
            with pytest.raises(LoginExpiredOrNotStarted):
                await flow.complete_login("abc123")
        finally:
            blocker.close()
            await flow.close()

    @pytest.mark.asyncio
    async def test_wait_for_code_timeout_keeps_login_pending(self, free_port: int) -> None:
        flow = LoginFlow(port=free_port, evict_port=False)
        try:
            state = _query(await flow.start_login())["state"]
            with pytest.raises(CallbackTimeout):
                await flow.wait_for_code(timeout=0.05)
            assert flow.registry.peek_state() == state

            response = await _send_callback(free_port, f"code=late&state={state}")
            assert response.status_code == 200
            assert await flow.wait_for_code(timeout=5) == "late"
        finally:
            await flow.close()

    @pytest.mark.asyncio
    async def test_start_evicts_port_owner(self, free_port: int, monkeypatch: pytest.MonkeyPatch) -> None:
        evicted: list[int] = []

        async def fake_evict(port: int) -> set[int]:
            evicted.append(port)
            return set()

        monkeypatch.setattr("codex_oauth.login.evict_port_owner", fake_evict)
        flow = LoginFlow(port=free_port, evict_port=True)
        try:
            await flow.start_login()
        finally:
            await flow.close()

        assert evicted == [free_port]
