"""
Tests for the mDNS service advertiser.

The zeroconf responder is replaced by a MagicMock with AsyncMock methods,
so no multicast traffic is generated.
"""

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from zeroconf import NonUniqueNameException

from ha_beacon.discovery import advertiser as advertiser_module
from ha_beacon.discovery.advertiser import (
    AdvertisedService,
    AdvertisementState,
    ServiceAdvertiser,
)
from ha_beacon.discovery.network import normalize_service_type

SERVICE_TYPE = "_connectbase._tcp"
FULL_TYPE = "_connectbase._tcp.local."


@pytest.fixture(autouse=True)
def fixed_host(monkeypatch):
    monkeypatch.setattr(advertiser_module, "local_hostname", lambda: "beacon-test.local.")
    monkeypatch.setattr(advertiser_module, "advertised_addresses", lambda: ["192.168.1.10"])


@pytest.fixture
def responder():
    aiozc = MagicMock()
    aiozc.async_register_service = AsyncMock()
    aiozc.async_update_service = AsyncMock()
    aiozc.async_unregister_service = AsyncMock()
    aiozc.async_close = AsyncMock()
    return aiozc


@pytest.fixture
def factory(responder):
    return MagicMock(return_value=responder)


@pytest.fixture
def advertiser(factory):
    return ServiceAdvertiser(zeroconf_factory=factory)


# --------------------------------------------------------------------------- #
# Descriptor helpers
# --------------------------------------------------------------------------- #


class TestServiceDescriptor:

    def test_normalize_service_type(self):
        assert normalize_service_type("_http._tcp") == "_http._tcp.local."
        assert normalize_service_type("_http._tcp.") == "_http._tcp.local."
        assert normalize_service_type("_http._tcp.local.") == "_http._tcp.local."
        assert normalize_service_type("  ") == ""

    def test_qualified_name(self):
        svc = AdvertisedService(FULL_TYPE, "CONNECTbase", 8090)
        assert svc.qualified_name == "CONNECTbase._connectbase._tcp.local."

    @pytest.mark.parametrize("service_type,name,port", [
        ("", "CONNECTbase", 8090),
        (FULL_TYPE, "", 8090),
        (FULL_TYPE, "CONNECTbase", 0),
        (FULL_TYPE, "CONNECTbase", 70000),
    ])
    def test_invalid_descriptors(self, service_type, name, port):
        assert AdvertisedService(service_type, name, port).validation_error() is not None


# --------------------------------------------------------------------------- #
# start()
# --------------------------------------------------------------------------- #


class TestStart:

    @pytest.mark.asyncio
    async def test_publishes_record(self, advertiser, responder):
        ok = await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090, {"path": "/", "proto": "ws"})

        assert ok is True
        assert advertiser.state is AdvertisementState.PUBLISHED
        responder.async_register_service.assert_awaited_once()

        info = responder.async_register_service.call_args[0][0]
        assert info.type == FULL_TYPE
        assert info.name == "CONNECTbase._connectbase._tcp.local."
        assert info.port == 8090
        assert info.server == "beacon-test.local."
        assert info.properties == {b"path": b"/", b"proto": b"ws"}
        assert info.parsed_addresses() == ["192.168.1.10"]

    @pytest.mark.asyncio
    async def test_responder_created_lazily_once(self, advertiser, factory):
        factory.assert_not_called()
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8091)
        factory.assert_called_once()

    @pytest.mark.asyncio
    async def test_second_start_updates_in_place(self, advertiser, responder):
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)
        ok = await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8091, {"proto": "ws"})

        assert ok is True
        responder.async_register_service.assert_awaited_once()
        responder.async_update_service.assert_awaited_once()
        responder.async_unregister_service.assert_not_called()
        assert responder.async_update_service.call_args[0][0].port == 8091
        assert advertiser.service.port == 8091
        assert advertiser.is_published

    @pytest.mark.asyncio
    async def test_rename_replaces_record(self, advertiser, responder):
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)
        await advertiser.start(SERVICE_TYPE, "Kitchen", 8090)

        old = responder.async_unregister_service.call_args[0][0]
        new = responder.async_register_service.call_args[0][0]
        assert old.name.startswith("CONNECTbase.")
        assert new.name.startswith("Kitchen.")
        assert responder.async_register_service.await_count == 2

    @pytest.mark.asyncio
    async def test_zero_port_refused(self, advertiser, responder, factory, caplog):
        with caplog.at_level(logging.WARNING, logger="ha_beacon.discovery.advertiser"):
            ok = await advertiser.start(SERVICE_TYPE, "CONNECTbase", 0)

        assert ok is False
        assert advertiser.state is AdvertisementState.UNPUBLISHED
        assert advertiser.service is None
        factory.assert_not_called()
        assert "refused" in caplog.text

    @pytest.mark.asyncio
    async def test_refusal_keeps_current_record(self, advertiser, responder):
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)
        ok = await advertiser.start(SERVICE_TYPE, "", 8090)

        assert ok is False
        assert advertiser.is_published
        assert advertiser.service.instance_name == "CONNECTbase"

    @pytest.mark.asyncio
    async def test_register_failure_reported(self, advertiser, responder):
        responder.async_register_service.side_effect = NonUniqueNameException()

        ok = await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)

        assert ok is False
        assert advertiser.state is AdvertisementState.UNPUBLISHED
        assert advertiser.service is None


# --------------------------------------------------------------------------- #
# stop() / republish() / close()
# --------------------------------------------------------------------------- #


class TestStopAndRepublish:

    @pytest.mark.asyncio
    async def test_stop_withdraws_and_clears(self, advertiser, responder):
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)
        registered = responder.async_register_service.call_args[0][0]

        await advertiser.stop()

        responder.async_unregister_service.assert_awaited_once_with(registered)
        responder.async_close.assert_not_called()
        assert advertiser.state is AdvertisementState.UNPUBLISHED
        assert advertiser.service is None

    @pytest.mark.asyncio
    async def test_stop_when_unpublished_is_noop(self, advertiser, responder):
        await advertiser.stop()
        responder.async_unregister_service.assert_not_called()
        assert advertiser.state is AdvertisementState.UNPUBLISHED

    @pytest.mark.asyncio
    async def test_republish_without_cache_is_noop(self, advertiser, responder, caplog):
        with caplog.at_level(logging.WARNING, logger="ha_beacon.discovery.advertiser"):
            ok = await advertiser.republish()

        assert ok is False
        assert "no cached parameters" in caplog.text
        responder.async_register_service.assert_not_called()
        assert advertiser.state is AdvertisementState.UNPUBLISHED

    @pytest.mark.asyncio
    async def test_republish_after_plain_stop_is_noop(self, advertiser, responder):
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)
        await advertiser.stop()

        assert await advertiser.republish() is False
        assert responder.async_register_service.await_count == 1

    @pytest.mark.asyncio
    async def test_republish_updates_published_record(self, advertiser, responder):
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)

        assert await advertiser.republish() is True
        responder.async_update_service.assert_awaited_once()
        assert responder.async_register_service.await_count == 1

    @pytest.mark.asyncio
    async def test_republish_rebuilds_after_stop_with_cache(self, advertiser, responder):
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090, {"path": "/"})
        await advertiser.stop(keep_cache=True)
        assert advertiser.state is AdvertisementState.UNPUBLISHED
        assert advertiser.service is not None

        assert await advertiser.republish() is True

        assert responder.async_register_service.await_count == 2
        info = responder.async_register_service.call_args[0][0]
        assert info.port == 8090
        assert info.properties == {b"path": b"/"}
        assert advertiser.is_published

    @pytest.mark.asyncio
    async def test_close_tears_down_responder(self, advertiser, responder, factory):
        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)
        await advertiser.close()

        responder.async_unregister_service.assert_awaited_once()
        responder.async_close.assert_awaited_once()
        assert advertiser.state is AdvertisementState.UNPUBLISHED

        await advertiser.start(SERVICE_TYPE, "CONNECTbase", 8090)
        assert factory.call_count == 2

    @pytest.mark.asyncio
    async def test_close_without_responder(self, advertiser, factory):
        await advertiser.close()
        factory.assert_not_called()
