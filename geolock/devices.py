"""
Device registry - binds device ids to Ed25519 public keys out of band.

Attestations carry their own public key, so a valid signature only shows
the attestation was not altered. Registering devices ahead of time, or
pinning the first key seen (trust on first use), ties each device id to
one key.
"""

import threading
from typing import Dict, Optional

from geolock.primitives import KEY_SIZE, constant_time_equal


class DeviceKeyMismatch(Exception):
    """Raised when a device id is re-registered with a different key."""

    def __init__(self, device_id: str):
        super().__init__(f"Device {device_id} is registered with a different key")
        self.device_id = device_id


class DeviceRegistry:
    """
    Thread-safe device id -> public key map.

    Args:
        trust_on_first_use: If True, pin() records unknown devices instead
            of rejecting them
    """

    def __init__(self, trust_on_first_use: bool = False):
        self.trust_on_first_use = trust_on_first_use
        self._keys: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def register(self, device_id: str, public_key: bytes) -> None:
        """
        Register a device key.

        Re-registering the same key is a no-op.

        Raises:
            ValueError: If the key is not 32 bytes
            DeviceKeyMismatch: If the device already has a different key
        """
        if len(public_key) != KEY_SIZE:
            raise ValueError(f"Device key must be {KEY_SIZE} bytes, got {len(public_key)}")
        with self._lock:
            existing = self._keys.get(device_id)
            if existing is not None and not constant_time_equal(existing, public_key):
                raise DeviceKeyMismatch(device_id)
            self._keys[device_id] = public_key

    def get(self, device_id: str) -> Optional[bytes]:
        """Get the registered key for a device."""
        with self._lock:
            return self._keys.get(device_id)

    def matches(self, device_id: str, public_key: bytes) -> bool:
        """True if the device is registered with exactly this key."""
        registered = self.get(device_id)
        return registered is not None and constant_time_equal(registered, public_key)

    def pin(self, device_id: str, public_key: bytes) -> bool:
        """
        Trust-on-first-use check.

        Returns:
            True if the key matches the pinned key, or was pinned now
        """
        with self._lock:
            existing = self._keys.get(device_id)
            if existing is None:
                if not self.trust_on_first_use or len(public_key) != KEY_SIZE:
                    return False
                self._keys[device_id] = public_key
                return True
        return constant_time_equal(existing, public_key)

    def __contains__(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)
