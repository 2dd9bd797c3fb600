"""
Geolock Attestation - Signed claims of physical presence.

A device signs its current coordinates with its Ed25519 key. The signed
payload is canonical JSON over the device id, fixed-decimal coordinates,
accuracy and timestamp, plus a SHA-256 commitment to the movement history
when one is attached, so the history cannot be swapped after signing.

Example:
    >>> from geolock.attestation import create_attestation, verify_attestation_signature
    >>> public, private = generate_signing_keypair()
    >>> att = create_attestation("phone-1", private, 18.5204, 73.8567, accuracy=5.0)
    >>> verify_attestation_signature(att)
    True

Note:
    Signature verification uses the public key carried in the attestation
    itself. That proves the attestation is internally consistent, not who
    the device is; bind device ids to keys with ``geolock.devices``.
"""

import hashlib
import json
import time
from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence, Tuple

from geolock.kdf import DEFAULT_ROUNDING, RoundingPolicy, canonical_number
from geolock.primitives import sign, signing_public_key, verify


@dataclass(frozen=True)
class MovementPoint:
    """One position sample from the device's recent history."""
    latitude: float
    longitude: float
    timestamp: int


@dataclass(frozen=True)
class LocationAttestation:
    """Signed location claim produced by a device for one unlock attempt."""
    device_id: str
    device_public_key: bytes
    latitude: float
    longitude: float
    accuracy: float
    timestamp: int
    signature: bytes = b""
    movement_history: Tuple[MovementPoint, ...] = ()


def movement_commitment(
    points: Sequence[MovementPoint],
    policy: RoundingPolicy = DEFAULT_ROUNDING,
) -> str:
    """Hex SHA-256 over the canonical encoding of a movement history."""
    encoded = json.dumps(
        [
            [
                policy.format_coordinate(p.latitude),
                policy.format_coordinate(p.longitude),
                int(p.timestamp),
            ]
            for p in points
        ],
        separators=(",", ":"),
    )
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def canonical_payload(
    attestation: LocationAttestation,
    policy: RoundingPolicy = DEFAULT_ROUNDING,
) -> bytes:
    """Bytes covered by the device signature."""
    payload = {
        "deviceId": attestation.device_id,
        "lat": policy.format_coordinate(attestation.latitude),
        "lon": policy.format_coordinate(attestation.longitude),
        "accuracy": canonical_number(attestation.accuracy),
        "timestamp": int(attestation.timestamp),
    }
    if attestation.movement_history:
        payload["movement"] = movement_commitment(attestation.movement_history, policy)
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def create_attestation(
    device_id: str,
    signing_private_key: bytes,
    latitude: float,
    longitude: float,
    accuracy: float,
    movement_history: Iterable[MovementPoint] = (),
    timestamp: Optional[int] = None,
    policy: RoundingPolicy = DEFAULT_ROUNDING,
) -> LocationAttestation:
    """
    Create and sign a location attestation.

    Args:
        device_id: Device identifier
        signing_private_key: Device's 32-byte Ed25519 private key
        latitude: Current latitude in degrees
        longitude: Current longitude in degrees
        accuracy: Reported position accuracy in meters
        movement_history: Recent position samples
        timestamp: Claim time in epoch ms (default: now)
        policy: Coordinate rounding policy

    Returns:
        Signed LocationAttestation
    """
    if timestamp is None:
        timestamp = int(time.time() * 1000)

    unsigned = LocationAttestation(
        device_id=device_id,
        device_public_key=signing_public_key(signing_private_key),
        latitude=latitude,
        longitude=longitude,
        accuracy=accuracy,
        timestamp=timestamp,
        movement_history=tuple(movement_history),
    )
    signature = sign(canonical_payload(unsigned, policy), signing_private_key)
    return replace(unsigned, signature=signature)


def verify_attestation_signature(
    attestation: LocationAttestation,
    policy: RoundingPolicy = DEFAULT_ROUNDING,
) -> bool:
    """Check the signature against the attestation's own public key."""
    return verify(
        canonical_payload(attestation, policy),
        attestation.signature,
        attestation.device_public_key,
    )
