from .adb import AdbDevice, ConsoleUserChannel

__all__ = ["AdbDevice", "ConsoleUserChannel"]
