"""Tests for callback port eviction."""

from __future__ import annotations

import os
import socket
from types import SimpleNamespace
from unittest.mock import MagicMock

import psutil
import pytest

from codex_oauth import port_guard


def _conn(port: int, pid: int, status: str = psutil.CONN_LISTEN) -> SimpleNamespace:
    return SimpleNamespace(status=status, laddr=SimpleNamespace(port=port), pid=pid)


def test_own_listener_is_never_a_target(free_port: int) -> None:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", free_port))
    sock.listen(1)
    try:
        assert os.getpid() not in port_guard.find_port_owners(free_port)
    finally:
        sock.close()


def test_find_port_owners_filters_by_port_and_state(monkeypatch: pytest.MonkeyPatch) -> None:
    conns = [
        _conn(1455, 111),
        _conn(1455, 222, status=psutil.CONN_ESTABLISHED),
        _conn(8080, 333),
        _conn(1455, os.getpid()),
    ]
    monkeypatch.setattr(port_guard.psutil, "net_connections", lambda kind: conns)

    assert port_guard.find_port_owners(1455) == {111}


@pytest.mark.asyncio
async def test_evict_kills_owner_and_waits(monkeypatch: pytest.MonkeyPatch) -> None:
    proc = MagicMock()
    proc.name.return_value = "stale-listener"
    monkeypatch.setattr(port_guard, "find_port_owners", lambda port: {4242})
    monkeypatch.setattr(port_guard.psutil, "Process", lambda pid: proc)
    monkeypatch.setattr(port_guard, "RELEASE_WAIT_SECONDS", 0)

    killed = await port_guard.evict_port_owner(1455)

    assert killed == {4242}
    proc.kill.assert_called_once_with()


@pytest.mark.asyncio
async def test_evict_tolerates_vanished_and_protected_processes(monkeypatch: pytest.MonkeyPatch) -> None:
    def process(pid: int) -> MagicMock:
        if pid == 1:
            raise psutil.NoSuchProcess(pid)
        proc = MagicMock()
        proc.kill.side_effect = psutil.AccessDenied(pid)
        return proc

    monkeypatch.setattr(port_guard, "find_port_owners", lambda port: {1, 2})
    monkeypatch.setattr(port_guard.psutil, "Process", process)

    assert await port_guard.evict_port_owner(1455) == set()


@pytest.mark.asyncio
async def test_evict_with_free_port_is_noop(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(port_guard, "find_port_owners", lambda port: set())
    assert await port_guard.evict_port_owner(1455) == set()
