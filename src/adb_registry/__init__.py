"""
adb-registry - A device registry on top of Android Debug Bridge

Tracks the devices reported by ``adb devices -l`` and runs pair, connect,
disconnect, push, pull and shell by calling the adb binary.
"""

__version__ = "0.1.0"
__author__ = "Galkurta"
__license__ = "MIT"
