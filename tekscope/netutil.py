"""Socket options and local address discovery."""

from __future__ import annotations

import socket
import time

import psutil

_LOOPBACK = "127.0.0.1"


def get_local_ipv4_addresses() -> list[str]:
    """Return the IPv4 addresses of interfaces that are up, excluding loopback."""
    stats = psutil.net_if_stats()
    result = []
    for name, addresses in psutil.net_if_addrs().items():
        iface = stats.get(name)
        if iface is None or not iface.isup:
            continue
        result.extend(
            addr.address
            for addr in addresses
            if addr.family == socket.AF_INET and addr.address != _LOOPBACK
        )
    return result


def get_primary_local_ip() -> str:
    """Return the first non-loopback IPv4 address, or the loopback address."""
    addresses = get_local_ipv4_addresses()
    return addresses[0] if addresses else _LOOPBACK


def set_non_blocking(sock: socket.socket, non_blocking: bool) -> None:
    sock.setblocking(not non_blocking)


def set_no_delay(sock: socket.socket, no_delay: bool) -> None:
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1 if no_delay else 0)


def set_reuse_addr(sock: socket.socket, reuse: bool) -> None:
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1 if reuse else 0)


def send_all(sock: socket.socket, data: bytes) -> None:
    """Send every byte, retrying while a non-blocking socket is full."""
    view = memoryview(data)
    while view:
        try:
            sent = sock.send(view)
        except BlockingIOError:
            time.sleep(0.001)
            continue
        view = view[sent:]