"""
Eviction of processes holding the fixed loopback callback port.

The redirect URI registered with the provider names a fixed port, so a stale
listener left behind by an earlier run (or another Codex client) has to be
terminated before a new login can bind it. This is a visible side effect of
starting a login and can be switched off with EVICT_PORT_OWNER=false.
"""
import asyncio
import logging
import os
from typing import Set

import psutil

logger = logging.getLogger(__name__)

# Time given to the OS to release the port after the owner is killed
RELEASE_WAIT_SECONDS = 0.2


def _listening(conn, port: int) -> bool:
    return (
        conn.status == psutil.CONN_LISTEN
        and bool(conn.laddr)
        and conn.laddr.port == port
    )


def find_port_owners(port: int) -> Set[int]:
    """
    Find PIDs of processes listening on a local TCP port.

    Returns:
        Set of PIDs, excluding the current process
    """
    owners: Set[int] = set()
    try:
        for conn in psutil.net_connections(kind="tcp"):
            if conn.pid and _listening(conn, port):
                owners.add(conn.pid)
    except psutil.AccessDenied:
        # macOS requires root for the system-wide table; scan our own user's processes
        for proc in psutil.process_iter():
            try:
                if any(_listening(conn, port) for conn in proc.net_connections(kind="tcp")):
                    owners.add(proc.pid)
            except (psutil.AccessDenied, psutil.NoSuchProcess, psutil.ZombieProcess):
                continue

    owners.discard(os.getpid())
    return owners


async def evict_port_owner(port: int) -> Set[int]:
    """
    Kill any other process listening on the port and wait for its release.

    Args:
        port: Local TCP port

    Returns:
        Set of PIDs that were killed
    """
    killed: Set[int] = set()
    for pid in find_port_owners(port):
        try:
            proc = psutil.Process(pid)
            logger.warning(f"Killing process {pid} ({proc.name()}) holding port {port}")
            proc.kill()
            killed.add(pid)
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied as e:
            logger.warning(f"Not allowed to kill process {pid} holding port {port}: {e}")

    if killed:
        await asyncio.sleep(RELEASE_WAIT_SECONDS)
    return killed
