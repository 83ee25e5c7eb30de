"""Client SDK — seat registration and forced-logout enforcement."""

from .credentials import AuthState, CredentialStore
from .device import DeviceIdentity
from .enforcement import SeatEnforcementHook, dismiss_notice, with_reason
from .events import AuthEventChannel
from .models import AuthEvent, AuthEventKind, ClientConfig, RegistrationResult
from .session_client import SeatSessionClient

__all__ = [
    "AuthEvent",
    "AuthEventChannel",
    "AuthEventKind",
    "AuthState",
    "ClientConfig",
    "CredentialStore",
    "DeviceIdentity",
    "RegistrationResult",
    "SeatEnforcementHook",
    "SeatSessionClient",
    "dismiss_notice",
    "with_reason",
]
