"""Device registry: push endpoints and delivery preferences per user."""

from focusflow.devices.models import DeviceRegistration, PreferenceFields, UserPreferences
from focusflow.devices.registry import DeviceRegistry

__all__ = [
    "DeviceRegistration",
    "DeviceRegistry",
    "PreferenceFields",
    "UserPreferences",
]
