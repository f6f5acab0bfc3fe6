import pytest

from adb_registry.core.adb_manager import AdbManager, ConnectionFailedError
from adb_registry.core.device import DeviceStatus
from adb_registry.utils.adb_wrapper import DeviceNotFoundError, DeviceOutputError


@pytest.fixture
def manager(scripted_adb):
    return AdbManager(scripted_adb)


@pytest.fixture
def events(manager):
    received = {'connected': [], 'disconnected': [], 'updated': []}
    manager.device_connected.connect(lambda device: received['connected'].append(device))
    manager.device_disconnected.connect(lambda serial: received['disconnected'].append(serial))
    manager.devices_updated.connect(lambda devices: received['updated'].append(devices))
    return received


class TestResync:

    @pytest.mark.asyncio
    async def test_populates_registry(self, manager):
        devices = await manager.resync()

        assert {d.serial for d in devices} == {"192.168.1.31:5555", "emulator-5554", "R58M123ABC"}
        tim_box = manager.get_device("192.168.1.31:5555")
        assert tim_box.status is DeviceStatus.DEVICE
        assert tim_box.transport_id == 1
        assert manager.get_device("R58M123ABC").status is DeviceStatus.UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_devices_returns_copies(self, manager):
        await manager.resync()

        manager.devices()[0].status = DeviceStatus.OFFLINE

        assert all(d.status is not DeviceStatus.OFFLINE for d in manager.devices())

    @pytest.mark.asyncio
    async def test_replaces_previous_content(self, manager, scripted_adb, events):
        await manager.resync()
        scripted_adb.respond(
            ["devices", "-l"],
            stdout="List of devices attached\nemulator-5554 device transport_id:2\nnew-one offline\n",
        )

        await manager.resync()

        assert sorted(d.serial for d in manager.devices()) == ["emulator-5554", "new-one"]
        assert sorted(events['disconnected']) == ["192.168.1.31:5555", "R58M123ABC"]
        assert [d.serial for d in events['connected']][-1] == "new-one"
        assert len(events['updated']) == 2

    @pytest.mark.asyncio
    async def test_unchanged_listing_emits_nothing(self, manager, events):
        await manager.resync()
        await manager.resync()

        assert len(events['connected']) == 3
        assert len(events['updated']) == 1

    @pytest.mark.asyncio
    async def test_skips_unknown_state(self, manager, scripted_adb):
        scripted_adb.respond(
            ["devices", "-l"],
            stdout="List of devices attached\nabc weird-state\ndef device\n",
        )

        devices = await manager.resync()

        assert [d.serial for d in devices] == ["def"]

    @pytest.mark.asyncio
    async def test_failed_listing_keeps_registry(self, manager, scripted_adb):
        await manager.resync()
        scripted_adb.respond(["devices", "-l"], stdout="garbage")

        with pytest.raises(DeviceOutputError):
            await manager.resync()
        assert len(manager.devices()) == 3

    @pytest.mark.asyncio
    async def test_empty_listing_clears(self, manager, scripted_adb):
        await manager.resync()
        scripted_adb.respond(["devices", "-l"], stdout="List of devices attached\n\n")

        assert await manager.resync() == []
        assert manager.devices() == []


class TestPair:

    @pytest.mark.asyncio
    async def test_success(self, manager, scripted_adb):
        scripted_adb.respond(
            ["pair", "192.168.1.31:37123", "123456"],
            stdout="Successfully paired to 192.168.1.31:37123 [guid=adb-R58M-abc]\n",
        )

        assert await manager.pair("192.168.1.31:37123", "123456") is True
        assert manager.devices() == []

    @pytest.mark.asyncio
    async def test_wrong_code(self, manager, scripted_adb):
        scripted_adb.respond(
            ["pair", "192.168.1.31:37123", "000000"],
            stdout="Failed: Wrong password or connection was dropped.\n",
            returncode=1,
        )

        assert await manager.pair("192.168.1.31:37123", "000000") is False


class TestConnect:

    @pytest.mark.asyncio
    async def test_inserts_device(self, manager, scripted_adb, events):
        scripted_adb.respond(["connect", "10.0.0.5:5555"], stdout="connected to 10.0.0.5:5555\n")
        scripted_adb.respond(["get-state"], stdout="device\n", device="10.0.0.5:5555")

        device = await manager.connect("10.0.0.5:5555")

        assert device.serial == "10.0.0.5:5555"
        assert device.status is DeviceStatus.DEVICE
        assert device.transport_id is None
        assert manager.get_device("10.0.0.5:5555") == device
        assert [d.serial for d in events['connected']] == ["10.0.0.5:5555"]

    @pytest.mark.asyncio
    async def test_reconnect_replaces_entry(self, manager, scripted_adb, events):
        await manager.resync()
        scripted_adb.respond(
            ["connect", "192.168.1.31:5555"], stdout="already connected to 192.168.1.31:5555\n"
        )
        scripted_adb.respond(["get-state"], stdout="device\n", device="192.168.1.31:5555")

        await manager.connect("192.168.1.31:5555")

        assert manager.get_device("192.168.1.31:5555").transport_id is None
        assert len(manager.devices()) == 3
        assert "192.168.1.31:5555" not in [d.serial for d in events['connected'][3:]]

    @pytest.mark.asyncio
    async def test_unreachable(self, manager, scripted_adb):
        scripted_adb.respond(
            ["connect", "10.0.0.9:5555"],
            stdout="failed to connect to '10.0.0.9:5555': Connection refused\n",
            returncode=1,
        )

        with pytest.raises(ConnectionFailedError):
            await manager.connect("10.0.0.9:5555")
        assert manager.get_device("10.0.0.9:5555") is None

    @pytest.mark.asyncio
    async def test_not_listed_afterwards(self, manager, scripted_adb):
        scripted_adb.respond(
            ["get-state"], stderr="error: device '10.0.0.5:5555' not found\n",
            returncode=1, device="10.0.0.5:5555",
        )

        with pytest.raises(DeviceNotFoundError):
            await manager.connect("10.0.0.5:5555")
        assert manager.devices() == []


class TestDisconnect:

    @pytest.mark.asyncio
    async def test_by_device(self, manager, scripted_adb, events):
        await manager.resync()
        device = manager.get_device("192.168.1.31:5555")

        await manager.disconnect(device)

        assert manager.get_device("192.168.1.31:5555") is None
        assert scripted_adb.calls[-1][1] == ("disconnect", "192.168.1.31:5555")
        assert events['disconnected'] == ["192.168.1.31:5555"]

    @pytest.mark.asyncio
    async def test_by_serial(self, manager):
        await manager.resync()

        await manager.disconnect("emulator-5554")

        assert sorted(d.serial for d in manager.devices()) == ["192.168.1.31:5555", "R58M123ABC"]

    @pytest.mark.asyncio
    async def test_unknown_serial(self, manager, scripted_adb, events):
        await manager.disconnect("nothing-here:5555")

        assert scripted_adb.calls[-1][1] == ("disconnect", "nothing-here:5555")
        assert events['disconnected'] == []

    @pytest.mark.asyncio
    async def test_disconnect_all(self, manager, scripted_adb, events):
        await manager.resync()

        await manager.disconnect_all()

        assert manager.devices() == []
        assert scripted_adb.calls[-1][1] == ("disconnect",)
        assert len(events['disconnected']) == 3
        assert events['updated'][-1] == []


def test_get_device_missing(manager):
    assert manager.get_device("abc") is None


class TestSignalPayloads:

    @pytest.mark.asyncio
    async def test_connected_payload_is_a_copy(self, manager, events):
        await manager.resync()

        for device in events['connected']:
            device.status = DeviceStatus.OFFLINE

        assert all(d.status is not DeviceStatus.OFFLINE for d in manager.devices())

    @pytest.mark.asyncio
    async def test_repeated_connect_updates_once(self, manager, scripted_adb, events):
        scripted_adb.respond(["connect", "10.0.0.5:5555"], stdout="connected to 10.0.0.5:5555\n")
        scripted_adb.respond(["get-state"], stdout="device\n", device="10.0.0.5:5555")

        returned = await manager.connect("10.0.0.5:5555")
        await manager.connect("10.0.0.5:5555")
        returned.status = DeviceStatus.OFFLINE

        assert len(events['connected']) == 1
        assert len(events['updated']) == 1
        assert manager.get_device("10.0.0.5:5555").status is DeviceStatus.DEVICE
