"""
Utilities Package

Process wrapper around the adb binary and logging setup.
"""
