"""
Configuration Manager - adb and logging settings

This module handles loading and saving settings through QSettings.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from PySide6.QtCore import QSettings

from adb_registry.utils.adb_wrapper import ADBWrapper

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_TRANSFER_TIMEOUT = 300


class ConfigManager:
    """Manages adb-registry configuration"""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Initialize configuration manager

        Args:
            path: INI file to use instead of the per-user settings store
        """
        if path:
            self.settings = QSettings(str(path), QSettings.Format.IniFormat)
        else:
            self.settings = QSettings("ADB Registry", "ADB Registry")
        logger.debug(f"Config Manager initialized ({self.settings.fileName()})")

    def sync(self):
        """Flush pending changes to disk"""
        self.settings.sync()

    def save_adb_path(self, path: str):
        """Save custom ADB binary path"""
        self.settings.setValue("adb/path", str(path))

    def load_adb_path(self) -> str:
        """Load custom ADB binary path ('' means auto-detect)"""
        return self.settings.value("adb/path", "", type=str)

    def save_timeout(self, seconds: int):
        """Save default command timeout"""
        self.settings.setValue("adb/timeout", int(seconds))

    def load_timeout(self) -> int:
        """Load default command timeout"""
        return self.settings.value("adb/timeout", DEFAULT_TIMEOUT, type=int)

    def save_transfer_timeout(self, seconds: int):
        """Save push/pull timeout"""
        self.settings.setValue("adb/transfer_timeout", int(seconds))

    def load_transfer_timeout(self) -> int:
        """Load push/pull timeout"""
        return self.settings.value("adb/transfer_timeout", DEFAULT_TRANSFER_TIMEOUT, type=int)

    def save_auto_start_server(self, enabled: bool):
        """Save whether 'adb start-server' runs before the first command"""
        self.settings.setValue("adb/auto_start_server", bool(enabled))

    def load_auto_start_server(self) -> bool:
        """Load whether 'adb start-server' runs before the first command"""
        return self.settings.value("adb/auto_start_server", True, type=bool)

    def save_log_level(self, level: str):
        """Save log level name"""
        self.settings.setValue("logging/level", level.upper())

    def load_log_level(self) -> str:
        """Load log level name"""
        return self.settings.value("logging/level", "INFO", type=str)

    def save_log_dir(self, path: str):
        """Save log directory"""
        self.settings.setValue("logging/dir", str(path))

    def load_log_dir(self) -> str:
        """Load log directory"""
        return self.settings.value("logging/dir", str(Path.cwd() / "logs"), type=str)

    def build_wrapper(self) -> ADBWrapper:
        """Create an ADB wrapper from the stored settings"""
        adb_path = self.load_adb_path()
        return ADBWrapper(
            adb_path=Path(adb_path) if adb_path else None,
            timeout=self.load_timeout(),
            transfer_timeout=self.load_transfer_timeout(),
            auto_start_server=self.load_auto_start_server()
        )
