"""
Local network helpers for mDNS advertisement.
"""

import logging
import socket

import psutil

logger = logging.getLogger("ha_beacon.discovery.network")

LOCAL_DOMAIN = ".local."


def normalize_service_type(service_type: str) -> str:
    """
    Return the fully-qualified DNS-SD form of a service type.

    "_http._tcp" and "_http._tcp.local" both become "_http._tcp.local.".
    """
    service_type = service_type.strip()
    if not service_type:
        return ""
    if service_type.endswith(LOCAL_DOMAIN):
        return service_type
    return service_type.rstrip(".").removesuffix(".local") + LOCAL_DOMAIN


def local_hostname() -> str:
    """Host name under the .local. domain, as used for the SRV target."""
    host = socket.gethostname().split(".")[0] or "ha-beacon"
    return f"{host}{LOCAL_DOMAIN}"


def list_ipv4_addrs() -> list[str]:
    """Return the local IPv4 addresses, excluding loopback, in interface order."""
    out: list[str] = []
    try:
        for _, infos in psutil.net_if_addrs().items():
            for info in infos:
                if info.family == socket.AF_INET:
                    ip = info.address
                    if ip and not ip.startswith("127."):
                        out.append(ip)
    except OSError as e:
        logger.warning("Interface enumeration failed: %s", e)
        return []

    # dedupe, keep order
    return list(dict.fromkeys(out))


def advertised_addresses() -> list[str]:
    """Addresses to put in the A records; loopback if nothing else is up."""
    addrs = list_ipv4_addrs()
    if not addrs:
        logger.warning("No LAN IPv4 address found, advertising loopback")
        return ["127.0.0.1"]
    return addrs
