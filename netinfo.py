"""Best-guess local IPv4 address of this host, shown for operator diagnostics.

Interfaces are walked first, in kernel index order. Hosts where that is not
possible fall back to the source address of the default route, then to
whatever the host name resolves to (often only 127.0.1.1 on Debian).
"""

import logging
import socket
import struct
import sys
from typing import List, Optional

logger = logging.getLogger(__name__)

SIOCGIFADDR = 0x8915  # Linux ioctl: IPv4 address of an interface


def _interface_addresses() -> List[str]:
    """IPv4 address of every interface that has one (Linux only)."""
    if not sys.platform.startswith("linux"):
        return []
    import fcntl

    addresses = []
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        for _, name in socket.if_nameindex():
            request = struct.pack("256s", name.encode("utf-8")[:15])
            try:
                reply = fcntl.ioctl(sock.fileno(), SIOCGIFADDR, request)
            except OSError:
                continue  # interface has no IPv4 address
            addresses.append(socket.inet_ntoa(reply[20:24]))
    return addresses


def _route_addresses() -> List[str]:
    """Source address the kernel would pick for an outbound packet.

    connect() on a UDP socket only selects a route; nothing is sent.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            sock.connect(("10.255.255.255", 1))
        except OSError:
            return []  # no route
        return [sock.getsockname()[0]]


def _hostname_addresses() -> List[str]:
    hostname = socket.gethostname()
    return [sockaddr[0]
            for family, _, _, _, sockaddr in socket.getaddrinfo(hostname, None, socket.AF_INET)
            if family == socket.AF_INET]


def local_ipv4() -> Optional[str]:
    """Return the first non-loopback IPv4 address of this host, if any.

    Raises OSError if interfaces cannot be listed or the host name cannot
    be resolved.
    """
    for source in (_interface_addresses, _route_addresses, _hostname_addresses):
        for address in source():
            if not address.startswith("127.") and address != "0.0.0.0":
                return address
    return None


def describe_local_ip() -> str:
    """Sidebar text for the host address. Never raises."""
    try:
        address = local_ipv4()
    except OSError as e:
        logger.debug("Could not enumerate host addresses: %s", e)
        return "Error retrieving IP address"
    if address is None:
        return "IP Address not found"
    return f"IP Address: {address}"
