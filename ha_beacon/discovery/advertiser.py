"""
mDNS service advertiser.

Owns the advertisement lifecycle of one DNS-SD service record on top of
zeroconf. The zeroconf instance (the capability handle) is kept alive
across stop/start so a restart only has to drop and re-register the
record. Must only be driven from the owning event loop.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Mapping, Optional, Union

from zeroconf import Error as ZeroconfError
from zeroconf import ServiceInfo
from zeroconf.asyncio import AsyncZeroconf

from .network import advertised_addresses, local_hostname, normalize_service_type

logger = logging.getLogger("ha_beacon.discovery.advertiser")

AttributeMap = Mapping[Union[bytes, str], Union[bytes, str]]


class AdvertisementState(str, Enum):
    """Lifecycle state of the advertised record."""
    UNPUBLISHED = "unpublished"
    PUBLISHED = "published"


@dataclass
class AdvertisedService:
    """The service descriptor announced on the network."""
    service_type: str
    instance_name: str
    port: int
    attributes: dict[bytes, bytes] = field(default_factory=dict)
    state: AdvertisementState = AdvertisementState.UNPUBLISHED

    @property
    def qualified_name(self) -> str:
        return f"{self.instance_name}.{self.service_type}"

    def validation_error(self) -> Optional[str]:
        """Return why this descriptor cannot be published, or None."""
        if not self.service_type:
            return "empty service type"
        if not self.instance_name:
            return "empty instance name"
        if not 0 < self.port <= 0xFFFF:
            return f"invalid port {self.port}"
        return None


def _to_bytes(value: Union[bytes, str]) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


def _encode_attributes(attributes: Optional[AttributeMap]) -> dict[bytes, bytes]:
    if not attributes:
        return {}
    return {_to_bytes(k): _to_bytes(v) for k, v in attributes.items()}


class ServiceAdvertiser:
    """
    Publishes, updates and withdraws one mDNS service record.

    States:
    - UNPUBLISHED (initial): no record on the network
    - PUBLISHED: record registered with zeroconf

    All operations are best-effort: zeroconf or socket failures are logged
    and reported as a False return, and never change the lifecycle state.
    """

    def __init__(self, zeroconf_factory: Optional[Callable[[], AsyncZeroconf]] = None):
        self._zeroconf_factory = zeroconf_factory or AsyncZeroconf
        self._zeroconf: Optional[AsyncZeroconf] = None
        self._info: Optional[ServiceInfo] = None
        self._service: Optional[AdvertisedService] = None

    @property
    def state(self) -> AdvertisementState:
        if self._service is None:
            return AdvertisementState.UNPUBLISHED
        return self._service.state

    @property
    def is_published(self) -> bool:
        return self.state is AdvertisementState.PUBLISHED

    @property
    def service(self) -> Optional[AdvertisedService]:
        """Cached descriptor (None once cleared by stop())."""
        return self._service

    def _ensure_zeroconf(self) -> AsyncZeroconf:
        # created lazily so it binds to the running loop
        if self._zeroconf is None:
            self._zeroconf = self._zeroconf_factory()
            logger.debug("Zeroconf responder created")
        return self._zeroconf

    def _build_info(self, service: AdvertisedService) -> ServiceInfo:
        return ServiceInfo(
            service.service_type,
            service.qualified_name,
            port=service.port,
            properties=dict(service.attributes),
            server=local_hostname(),
            parsed_addresses=advertised_addresses(),
        )

    async def _announce(self, service: AdvertisedService) -> bool:
        """Advertise or update the record for ``service``."""
        try:
            info = self._build_info(service)
            aiozc = self._ensure_zeroconf()

            if self._info is not None and self._info.name == info.name:
                await aiozc.async_update_service(info)
            else:
                if self._info is not None:
                    await aiozc.async_unregister_service(self._info)
                    self._info = None
                await aiozc.async_register_service(info)
        except (ZeroconfError, OSError) as e:
            logger.error("[mDNS] Announce of %s failed: %s", service.qualified_name, e)
            if self._info is None and self._service is not None:
                # old record already withdrawn
                self._service.state = AdvertisementState.UNPUBLISHED
            return False

        self._info = info
        service.state = AdvertisementState.PUBLISHED
        return True

    async def _withdraw(self) -> None:
        if self._info is None or self._zeroconf is None:
            self._info = None
            return
        try:
            await self._zeroconf.async_unregister_service(self._info)
        except (ZeroconfError, OSError) as e:
            logger.warning("[mDNS] Unregister of %s failed: %s", self._info.name, e)
        self._info = None

    async def start(
        self,
        service_type: str,
        instance_name: str,
        port: int,
        attributes: Optional[AttributeMap] = None,
    ) -> bool:
        """
        Publish the service, or update it in place if already published.

        Args:
            service_type: DNS-SD type, e.g. "_connectbase._tcp"
            instance_name: Human readable instance name
            port: Port of the advertised service (must be non-zero)
            attributes: TXT record key/value pairs

        Returns:
            True if the record is now published with these parameters
        """
        candidate = AdvertisedService(
            service_type=normalize_service_type(service_type),
            instance_name=instance_name.strip(),
            port=int(port),
            attributes=_encode_attributes(attributes),
        )
        problem = candidate.validation_error()
        if problem:
            logger.warning("[mDNS] start() refused: %s", problem)
            return False

        previous = self._service
        if not await self._announce(candidate):
            return False

        self._service = candidate
        if previous is not None and previous is not candidate:
            previous.state = AdvertisementState.UNPUBLISHED

        logger.info(
            "[mDNS] Published %s as %s on port %d",
            candidate.service_type, candidate.instance_name, candidate.port,
        )
        return True

    async def stop(self, keep_cache: bool = False) -> None:
        """
        Withdraw the published record.

        The zeroconf responder is kept for a quick restart. With
        ``keep_cache`` the parameters survive so republish() can rebuild
        the record; otherwise they are cleared.
        """
        if self._info is not None and self._service is not None:
            logger.info(
                "[mDNS] Unpublished %s instance %s",
                self._service.service_type, self._service.instance_name,
            )
        await self._withdraw()

        if self._service is not None:
            self._service.state = AdvertisementState.UNPUBLISHED
        if not keep_cache:
            self._service = None

        logger.info("[mDNS] stopped")

    async def republish(self) -> bool:
        """
        Re-announce without new parameters.

        Cheap update when a record is registered; rebuild from the cached
        parameters when it was dropped; no-op when nothing is cached.
        """
        service = self._service
        if service is None:
            logger.warning("[mDNS] republish() skipped; no cached parameters.")
            return False

        if self._info is not None:
            try:
                await self._ensure_zeroconf().async_update_service(self._info)
            except (ZeroconfError, OSError) as e:
                logger.error("[mDNS] Re-announce of %s failed: %s", self._info.name, e)
                return False
            logger.info(
                "[mDNS] Re-announced %s instance %s",
                service.service_type, service.instance_name,
            )
            return True

        if not await self._announce(service):
            return False
        logger.info(
            "[mDNS] Rebuilt and announced %s instance %s on port %d",
            service.service_type, service.instance_name, service.port,
        )
        return True

    async def close(self) -> None:
        """Withdraw the record and tear down the zeroconf responder."""
        await self.stop()
        if self._zeroconf is not None:
            try:
                await self._zeroconf.async_close()
            except (ZeroconfError, OSError) as e:
                logger.warning("[mDNS] Responder close failed: %s", e)
            self._zeroconf = None
            logger.debug("Zeroconf responder closed")
