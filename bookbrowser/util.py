"""Small network helpers."""

from __future__ import annotations

import ipaddress
import socket

_PROBE_ADDRESS = ("8.8.8.8", 80)


def get_outbound_ip(probe: tuple[str, int] = _PROBE_ADDRESS) -> str | None:
    """Return the address of the interface used for outbound traffic.

    Connecting a UDP socket sends no packets; it only asks the kernel to pick
    a route. Returns ``None`` when no route exists or the chosen address is a
    loopback one.
    """

    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(probe)
            address = sock.getsockname()[0]
    except OSError:
        return None

    try:
        parsed = ipaddress.ip_address(address)
    except ValueError:
        return None
    if parsed.is_loopback or parsed.is_unspecified:
        return None
    return address
