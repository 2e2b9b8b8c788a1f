from .adb import PULL, PUSH, AdbTransport, DeviceError, TransferResult
from .emulator_config import detect_adb_port, resolve_device_address

__all__ = [
    "PULL",
    "PUSH",
    "AdbTransport",
    "DeviceError",
    "TransferResult",
    "detect_adb_port",
    "resolve_device_address",
]
