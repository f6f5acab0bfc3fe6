"""
Device - A single Android device known to adb

Each operation starts a fresh ``adb -s <serial> ...`` process and hands its
output back unchanged.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from adb_registry.utils.adb_wrapper import (
    ADBError,
    ADBWrapper,
    CommandResult,
    DeviceNotFoundError,
)

logger = logging.getLogger(__name__)

_HOST_PORT = re.compile(r"^[\w.\-\[\]:]+:\d+$")


class InvalidDeviceStatusError(ADBError, ValueError):
    """Raised when adb reports a device state this module does not know"""
    pass


class DeviceStatus(str, Enum):
    """Device state as printed by 'adb devices' and 'adb get-state'"""

    DEVICE = "device"
    OFFLINE = "offline"
    UNAUTHORIZED = "unauthorized"
    AUTHORIZING = "authorizing"
    CONNECTING = "connecting"
    BOOTLOADER = "bootloader"
    RECOVERY = "recovery"
    RESCUE = "rescue"
    SIDELOAD = "sideload"
    HOST = "host"
    NO_PERMISSIONS = "no permissions"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, text: str) -> "DeviceStatus":
        """
        Convert adb output into a status

        Raises:
            InvalidDeviceStatusError: If the word is not a known state
        """
        value = text.strip()
        try:
            return cls(value)
        except ValueError:
            raise InvalidDeviceStatusError(
                f"Unexpected device status: {value!r}"
            ) from None


@dataclass
class Device:
    """Represents an Android device"""
    serial: str
    status: DeviceStatus
    transport_id: Optional[int] = None
    product: Optional[str] = None
    model: Optional[str] = None
    device_name: Optional[str] = None
    usb: Optional[str] = None
    adb: Optional[ADBWrapper] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_listing(cls, adb: ADBWrapper, entry: Dict[str, str]) -> "Device":
        """
        Build a device from one entry of ``ADBWrapper.devices()``

        Raises:
            InvalidDeviceStatusError: If the state column is not recognised
        """
        transport_id = entry.get('transport_id')
        try:
            transport_id = int(transport_id) if transport_id is not None else None
        except ValueError:
            logger.debug(f"Ignoring non-numeric transport_id {transport_id!r} for {entry['serial']}")
            transport_id = None

        return cls(
            serial=entry['serial'],
            status=DeviceStatus.parse(entry['state']),
            transport_id=transport_id,
            product=entry.get('product'),
            model=entry.get('model'),
            device_name=entry.get('device'),
            usb=entry.get('usb'),
            adb=adb,
        )

    @classmethod
    async def from_address(cls, adb: ADBWrapper, address: str) -> "Device":
        """
        Query adb for the state of ``address`` and build a device for it

        The transport id is only reported by 'adb devices -l', so it is left unset.

        Args:
            adb: ADB wrapper instance
            address: Serial or host:port of the device

        Returns:
            Device object

        Raises:
            DeviceNotFoundError: If adb does not know the address
        """
        status = await _query_state(adb, address)
        return cls(serial=address, status=status, transport_id=None, adb=adb)

    @property
    def is_authorized(self) -> bool:
        """Check if device is authorized for debugging"""
        return self.status == DeviceStatus.DEVICE

    @property
    def is_wireless(self) -> bool:
        """True for TCP/IP and mDNS connected devices"""
        return '._adb-tls-' in self.serial or bool(_HOST_PORT.match(self.serial))

    @property
    def display_name(self) -> str:
        """Get user-friendly display name"""
        if self.model:
            return self.model.replace('_', ' ')

        # Clean up mDNS-style serials like "adb-XXXXX-YYYYY._adb-tls-connect._tcp."
        serial = self.serial
        if '._adb-tls-' in serial:
            serial = serial.split('._adb-')[0]

        return serial

    def __str__(self) -> str:
        return f"{self.display_name} ({self.serial})"

    def _require_adb(self) -> ADBWrapper:
        if self.adb is None:
            raise ADBError(f"Device {self.serial} is not bound to an ADB wrapper")
        return self.adb

    async def get_state(self) -> DeviceStatus:
        """
        Re-query the device state and update this record

        Returns:
            The current status
        """
        self.status = await _query_state(self._require_adb(), self.serial)
        return self.status

    async def push(self, local: Union[str, Path], remote: str) -> CommandResult:
        """
        Push a file or directory to the device

        Args:
            local: Local file path
            remote: Remote destination path

        Returns:
            CommandResult of the 'adb push' process
        """
        adb = self._require_adb()
        logger.info(f"Pushing {local} to {self.serial}:{remote}")
        result = await adb.execute(
            ["push", str(local), remote],
            device=self.serial,
            timeout=adb.transfer_timeout,
            check_errors=False
        )
        if not result.ok:
            logger.warning(f"Push of {local} exited with {result.returncode}: {result.stderr.strip()}")
        return result

    async def pull(self, remote: str, local: Union[str, Path]) -> CommandResult:
        """
        Pull a file or directory from the device

        Args:
            remote: Remote file path
            local: Local destination path; missing parent directories are created

        Returns:
            CommandResult of the 'adb pull' process
        """
        adb = self._require_adb()
        Path(local).parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Pulling {self.serial}:{remote} to {local}")
        result = await adb.execute(
            ["pull", remote, str(local)],
            device=self.serial,
            timeout=adb.transfer_timeout,
            check_errors=False
        )
        if not result.ok:
            logger.warning(f"Pull of {remote} exited with {result.returncode}: {result.stderr.strip()}")
        return result

    async def shell(self, command: str) -> CommandResult:
        """
        Run a shell command on the device

        Args:
            command: Shell command line, passed to 'adb shell' as one argument

        Returns:
            CommandResult of the 'adb shell' process
        """
        return await self._require_adb().execute(
            ["shell", command],
            device=self.serial,
            check_errors=False
        )


async def _query_state(adb: ADBWrapper, address: str) -> DeviceStatus:
    """Run 'adb -s <address> get-state' and map the answer to a status"""
    stdout, stderr, returncode = await adb.execute(
        ["get-state"],
        device=address,
        check_errors=False
    )
    if returncode == 0:
        return DeviceStatus.parse(stdout)

    # get-state only prints "device"; other states come back as errors
    message = stderr.strip().lower()
    if "unauthorized" in message:
        return DeviceStatus.UNAUTHORIZED
    if "offline" in message:
        return DeviceStatus.OFFLINE
    if "authorizing" in message:
        return DeviceStatus.AUTHORIZING
    raise DeviceNotFoundError(stderr.strip() or f"Device {address} not found")
