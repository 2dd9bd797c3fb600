"""
Geolock Key Derivation - HKDF and location-bound keys.

Implements HKDF-SHA256 (RFC 5869) directly on top of ``hmac`` and binds
the derived key to a geofence and time window. A sender and a recipient
holding the same X25519 shared secret and the same ``LocationBinding``
derive byte-identical keys; change any field and the key is unrelated.

Example:
    >>> from geolock.kdf import LocationBinding, derive_location_key
    >>> binding = LocationBinding.create(18.5204, 73.8567, 100, 1000, 2000)
    >>> key = derive_location_key(shared_secret, binding)
    >>> len(key)
    32
"""

import base64
import hashlib
import hmac
import json
import math
import os
from dataclasses import dataclass
from typing import Union

HASH_LENGTH = 32
MAX_OUTPUT_LENGTH = 255 * HASH_LENGTH
LOCATION_KEY_LENGTH = 32
BINDING_NONCE_SIZE = 16

# Versioned domain separation for location-bound keys
LOCATION_KEY_SALT = b"LocationBoundMessaging-v1"


def hkdf_extract(salt: bytes, ikm: bytes) -> bytes:
    """
    HKDF-Extract: PRK = HMAC-SHA256(key=salt, msg=ikm).

    An empty salt is replaced by HashLen zero bytes, as RFC 5869 specifies.
    """
    if not salt:
        salt = bytes(HASH_LENGTH)
    return hmac.new(salt, ikm, hashlib.sha256).digest()


def hkdf_expand(prk: bytes, info: bytes, length: int) -> bytes:
    """
    HKDF-Expand: T(i) = HMAC-SHA256(PRK, T(i-1) || info || i).

    Args:
        prk: Pseudorandom key from hkdf_extract()
        info: Context and application specific information
        length: Output length in bytes (at most 255 * 32)

    Returns:
        Output keying material

    Raises:
        ValueError: If length is negative or exceeds 255 * HashLen
    """
    if length < 0 or length > MAX_OUTPUT_LENGTH:
        raise ValueError(
            f"HKDF output length must be 0..{MAX_OUTPUT_LENGTH}, got {length}"
        )

    okm = b""
    block = b""
    counter = 1
    while len(okm) < length:
        block = hmac.new(prk, block + info + bytes([counter]), hashlib.sha256).digest()
        okm += block
        counter += 1

    return okm[:length]


def hkdf(ikm: bytes, salt: bytes, info: bytes, length: int = 32) -> bytes:
    """Full HKDF: expand(extract(salt, ikm), info, length)."""
    return hkdf_expand(hkdf_extract(salt, ikm), info, length)


@dataclass(frozen=True)
class RoundingPolicy:
    """
    Fixed decimal precision applied to coordinates before they are hashed
    or signed. Six decimals is roughly 0.1 m at the equator.
    """
    decimals: int = 6

    def __post_init__(self):
        if not 0 <= self.decimals <= 12:
            raise ValueError(f"decimals must be 0..12, got {self.decimals}")

    def format_coordinate(self, value: float) -> str:
        """Render a coordinate as a fixed-decimal string."""
        return f"{value:.{self.decimals}f}"


DEFAULT_ROUNDING = RoundingPolicy()


def canonical_number(value: Union[int, float]) -> Union[int, float]:
    """Collapse integral floats to int so 100 and 100.0 encode the same."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


@dataclass(frozen=True)
class LocationBinding:
    """
    Geofence and time window a message is bound to.

    Attributes:
        latitude: Target latitude in degrees
        longitude: Target longitude in degrees
        radius_m: Acceptance radius in meters
        window_start: Start of the unlock window (epoch ms)
        window_end: End of the unlock window (epoch ms)
        nonce: Random per-message bytes; keeps keys distinct for messages
            sharing a secret and coordinates
    """
    latitude: float
    longitude: float
    radius_m: float
    window_start: int
    window_end: int
    nonce: bytes

    def __post_init__(self):
        for name in ("latitude", "longitude", "radius_m"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite")
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")
        if self.radius_m <= 0:
            raise ValueError(f"radius must be positive, got {self.radius_m}")
        if self.window_start > self.window_end:
            raise ValueError("window_start must not be after window_end")
        if not self.nonce:
            raise ValueError("binding nonce must not be empty")

    @classmethod
    def create(
        cls,
        latitude: float,
        longitude: float,
        radius_m: float,
        window_start: int,
        window_end: int,
    ) -> "LocationBinding":
        """Create a binding with a fresh random nonce."""
        return cls(
            latitude=latitude,
            longitude=longitude,
            radius_m=radius_m,
            window_start=window_start,
            window_end=window_end,
            nonce=os.urandom(BINDING_NONCE_SIZE),
        )


def encode_binding_info(
    binding: LocationBinding,
    policy: RoundingPolicy = DEFAULT_ROUNDING,
) -> bytes:
    """
    Encode a binding as the HKDF info string.

    Compact JSON with a fixed key order; coordinates are fixed-decimal
    strings and the nonce is standard base64.
    """
    info = {
        "lat": policy.format_coordinate(binding.latitude),
        "lon": policy.format_coordinate(binding.longitude),
        "radius": canonical_number(binding.radius_m),
        "start": int(binding.window_start),
        "end": int(binding.window_end),
        "nonce": base64.b64encode(binding.nonce).decode("ascii"),
    }
    return json.dumps(info, separators=(",", ":")).encode("utf-8")


def derive_location_key(
    shared_secret: bytes,
    binding: LocationBinding,
    policy: RoundingPolicy = DEFAULT_ROUNDING,
) -> bytes:
    """
    Derive the location-bound key for a binding.

    Args:
        shared_secret: 32-byte X25519 shared secret
        binding: Geofence and time window
        policy: Coordinate rounding policy

    Returns:
        32-byte AES-256-GCM key

    Raises:
        ValueError: If the shared secret is not 32 bytes
    """
    if len(shared_secret) != 32:
        raise ValueError(f"Shared secret must be 32 bytes, got {len(shared_secret)}")

    prk = hkdf_extract(LOCATION_KEY_SALT, shared_secret)
    return hkdf_expand(prk, encode_binding_info(binding, policy), LOCATION_KEY_LENGTH)
