"""
Service discovery module for the beacon hub.

Advertises the hub on the local network via mDNS / DNS-SD so clients
(e.g. Home Assistant) can find it without configuration.
"""

from .advertiser import AdvertisedService, AdvertisementState, AttributeMap, ServiceAdvertiser
from .network import advertised_addresses, list_ipv4_addrs, local_hostname, normalize_service_type

__all__ = [
    "AdvertisedService",
    "AdvertisementState",
    "AttributeMap",
    "ServiceAdvertiser",
    "advertised_addresses",
    "list_ipv4_addrs",
    "local_hostname",
    "normalize_service_type",
]
