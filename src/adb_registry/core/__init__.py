"""
Core Package

Device record and the registry that keeps it in sync with adb.
"""

from .device import Device, DeviceStatus, InvalidDeviceStatusError
from .adb_manager import AdbManager, ConnectionFailedError

__all__ = [
    'Device',
    'DeviceStatus',
    'InvalidDeviceStatusError',
    'AdbManager',
    'ConnectionFailedError',
]
