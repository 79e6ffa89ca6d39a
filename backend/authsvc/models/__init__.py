from authsvc.models.device_secret import DeviceSecret
from authsvc.models.user import User

__all__ = [
    "DeviceSecret",
    "User",
]
