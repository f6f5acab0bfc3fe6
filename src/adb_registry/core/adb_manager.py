"""
ADB Manager - Registry of the devices adb currently knows about

This module keeps an in-memory map of devices keyed by serial, synchronised
against 'adb devices -l', and handles pairing, wireless connections and
disconnection. Changes are announced through Qt signals.
"""

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Union

from PySide6.QtCore import QObject, Signal

from adb_registry.core.device import Device, InvalidDeviceStatusError
from adb_registry.utils.adb_wrapper import ADBError, ADBWrapper

logger = logging.getLogger(__name__)

_CONNECT_FAILURES = ("failed to connect", "cannot connect", "unable to connect", "failed to resolve")


class ConnectionFailedError(ADBError):
    """Raised when 'adb connect' reports that it could not reach the device"""
    pass


class AdbManager(QObject):
    """
    Manages the set of devices reported by adb

    Signals:
        device_connected: Emitted when a device enters the registry
        device_disconnected: Emitted when a device leaves the registry (serial)
        devices_updated: Emitted when the device list changes
    """

    device_connected = Signal(object)  # Device
    device_disconnected = Signal(str)  # serial
    devices_updated = Signal(list)  # List[Device]

    def __init__(self, adb: Optional[ADBWrapper] = None):
        """
        Initialize ADB Manager

        Args:
            adb: ADB wrapper instance (default: system adb)
        """
        super().__init__()
        self.adb = adb or ADBWrapper()
        self._devices: Dict[str, Device] = {}
        logger.info("ADB Manager initialized")

    def devices(self) -> List[Device]:
        """
        Get currently known devices

        Returns:
            Copies of the cached Device objects
        """
        return [replace(device) for device in self._devices.values()]

    def get_device(self, serial: str) -> Optional[Device]:
        """
        Get a specific device from the registry

        Args:
            serial: Device serial number

        Returns:
            Device object or None
        """
        return self._devices.get(serial)

    async def resync(self) -> List[Device]:
        """
        Rebuild the registry from 'adb devices -l'

        The registry is only replaced once the listing has been read and
        parsed; on error it keeps its previous content.

        Returns:
            List of devices now in the registry
        """
        listing = await self.adb.devices()

        current: Dict[str, Device] = {}
        for entry in listing:
            try:
                device = Device.from_listing(self.adb, entry)
            except InvalidDeviceStatusError as e:
                logger.warning(f"Skipping {entry['serial']}: {e}")
                continue
            current.setdefault(device.serial, device)

        previous = self._devices
        self._devices = current

        changed = False
        for serial, device in current.items():
            if serial not in previous:
                logger.info(f"New device detected: {device}")
                self.device_connected.emit(replace(device))
                changed = True
            elif previous[serial] != device:
                changed = True

        for serial in previous.keys() - current.keys():
            logger.info(f"Device disconnected: {serial}")
            self.device_disconnected.emit(serial)
            changed = True

        if changed:
            self._emit_updated()

        return self.devices()

    async def pair(self, address: str, pairing_code: str) -> bool:
        """
        Pair with a device for wireless debugging (Android 11+)

        Args:
            address: host:port shown in the Wireless Debugging pairing dialog
            pairing_code: 6-digit pairing code

        Returns:
            True if adb reports the pairing succeeded
        """
        logger.info(f"Attempting wireless pairing with {address}")
        stdout, stderr, _ = await self.adb.execute(
            ["pair", address, pairing_code],
            check_errors=False
        )
        success = "successfully paired" in stdout.lower()
        if success:
            logger.info("Wireless pairing successful")
        else:
            logger.error(f"Wireless pairing failed: {(stdout + stderr).strip()}")
        return success

    async def connect(self, address: str) -> Device:
        """
        Connect to a device over TCP/IP and add it to the registry

        Args:
            address: host:port of the device

        Returns:
            The connected Device

        Raises:
            ConnectionFailedError: If adb could not reach the address
            DeviceNotFoundError: If adb does not list the address afterwards
        """
        logger.info(f"Attempting wireless connection to {address}")

        stdout, stderr, _ = await self.adb.execute(["connect", address], check_errors=False)
        output = (stdout + stderr).strip()
        if any(marker in output.lower() for marker in _CONNECT_FAILURES):
            logger.error(f"Wireless connection failed: {output}")
            raise ConnectionFailedError(output)

        device = await Device.from_address(self.adb, address)
        previous = self._devices.get(address)
        self._devices[address] = device

        logger.info(f"Wireless connection successful: {device}")
        if previous is None:
            self.device_connected.emit(replace(device))
        if previous != device:
            self._emit_updated()
        return replace(device)

    async def disconnect(self, device: Union[Device, str]) -> None:
        """
        Disconnect a device and drop it from the registry

        Args:
            device: Device object or serial
        """
        serial = device.serial if isinstance(device, Device) else device
        await self.adb.execute(["disconnect", serial], check_errors=False)

        if self._devices.pop(serial, None) is not None:
            logger.info(f"Device disconnected: {serial}")
            self.device_disconnected.emit(serial)
            self._emit_updated()

    async def disconnect_all(self) -> None:
        """Disconnect every TCP/IP device and empty the registry"""
        await self.adb.execute(["disconnect"], check_errors=False)

        serials = list(self._devices)
        self._devices.clear()
        for serial in serials:
            self.device_disconnected.emit(serial)
        if serials:
            logger.info(f"Disconnected {len(serials)} device(s)")
            self._emit_updated()

    def _emit_updated(self):
        logger.debug(f"AdbManager: Emitting devices_updated with {len(self._devices)} devices")
        self.devices_updated.emit(self.devices())
