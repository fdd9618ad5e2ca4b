"""host:port parsing.

Splitting is purely textual: no case folding, no default ports and no DNS.
Two authorities match only when both their host strings and their port
strings are identical.
"""

from __future__ import annotations

import structlog

from blockproxy.core.exceptions import AddressError

logger = structlog.get_logger()

DEFAULT_TARGET_PORT = "443"


def split_host_port(hostport: str) -> tuple[str, str]:
    """Split ``host:port``, ``[v6]:port`` into host and port.

    Raises:
        AddressError: If the string has no port, too many colons or
            unbalanced brackets.
    """
    i = hostport.rfind(":")
    if i < 0:
        raise AddressError(hostport, "missing port in address")

    # offsets past which brackets may no longer appear
    j = k = 0
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise AddressError(hostport, "missing ']' in address")
        if end + 1 == len(hostport):
            raise AddressError(hostport, "missing port in address")
        if end + 1 != i:
            if hostport[end + 1] == ":":
                raise AddressError(hostport, "too many colons in address")
            raise AddressError(hostport, "missing port in address")
        host = hostport[1:end]
        j, k = 1, end + 1
    else:
        host = hostport[:i]
        if ":" in host:
            raise AddressError(hostport, "too many colons in address")

    if "[" in hostport[j:]:
        raise AddressError(hostport, "unexpected '[' in address")
    if "]" in hostport[k:]:
        raise AddressError(hostport, "unexpected ']' in address")

    return host, hostport[i + 1 :]


def join_host_port(host: str, port: str | int) -> str:
    """Inverse of split_host_port; brackets IPv6 literals."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def same_host_port(hostport1: str, hostport2: str) -> bool:
    """Compare two authorities component-wise.

    Both sides must split; a parse failure on either side propagates.
    """
    host1, port1 = split_host_port(hostport1)
    host2, port2 = split_host_port(hostport2)
    return host1 == host2 and port1 == port2


def normalize_target(target: str) -> str:
    """Return the configured target with a port, defaulting to 443.

    Raises:
        AddressError: If the result still does not yield a non-empty host
            and a non-empty port.
    """
    target = target.strip()
    try:
        split_host_port(target)
    except AddressError as e:
        logger.warning(
            "Target has no port, defaulting to 443",
            target=target,
            error=e.reason,
        )
        target = f"{target}:{DEFAULT_TARGET_PORT}"

    host, port = split_host_port(target)
    if not host:
        raise AddressError(target, "missing host in address")
    if not port:
        raise AddressError(target, "missing port in address")
    return target


def resolve_dial_address(target_ip: str, default_port: str) -> str:
    """Return the address dialed for an IP override.

    An override that already carries a port is used as is, otherwise
    ``default_port`` is appended.

    Raises:
        AddressError: If the resulting address cannot be split or has an
            empty host or port.
    """
    try:
        split_host_port(target_ip)
    except AddressError:
        address = join_host_port(target_ip, default_port)
    else:
        address = target_ip

    host, port = split_host_port(address)
    if not host:
        raise AddressError(address, "missing host in address")
    if not port:
        raise AddressError(address, "missing port in address")
    return address
