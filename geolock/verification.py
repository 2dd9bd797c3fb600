"""
Geolock Verification - Ordered presence checks gating key release.

The pipeline runs its checks in a fixed order and stops at the first
failure:

1. Signature (and, with a registry, device registration)
2. Freshness
3. Time window
4. Geofence
5. Movement plausibility (history of 2+ samples)
6. Continuous presence (when required)

A valid result is what authorizes the caller to release the wrapped
content key; the pipeline itself never touches key material.

Example:
    >>> config = VerificationConfig.for_binding(binding)
    >>> result = verify_attestation(attestation, config)
    >>> if not result.valid:
    ...     print(result.reason.value, result.distance)
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from geolock.attestation import LocationAttestation, verify_attestation_signature
from geolock.devices import DeviceRegistry
from geolock.geo import (
    format_distance,
    longest_presence_span,
    max_speed,
    within_geofence,
)
from geolock.kdf import DEFAULT_ROUNDING, LocationBinding, RoundingPolicy

DEFAULT_MAX_AGE_MS = 300_000
DEFAULT_MAX_SPEED_MPS = 200.0
DEFAULT_MIN_PRESENCE_MS = 30_000


class ReasonCode(Enum):
    """Why an attestation was rejected."""
    INVALID_SIGNATURE = "InvalidSignature"
    UNREGISTERED_DEVICE = "UnregisteredDevice"
    STALE_ATTESTATION = "StaleAttestation"
    OUTSIDE_TIME_WINDOW = "OutsideTimeWindow"
    OUTSIDE_GEOFENCE = "OutsideGeofence"
    IMPLAUSIBLE_MOVEMENT = "ImplausibleMovement"
    INSUFFICIENT_PRESENCE = "InsufficientPresence"


@dataclass(frozen=True)
class VerificationConfig:
    """Target geofence, window and anti-spoofing thresholds."""
    target_latitude: float
    target_longitude: float
    radius_m: float
    window_start: int
    window_end: int
    max_age_ms: int = DEFAULT_MAX_AGE_MS
    max_speed_mps: float = DEFAULT_MAX_SPEED_MPS
    require_continuous_presence: bool = False
    min_presence_ms: int = DEFAULT_MIN_PRESENCE_MS
    rounding: RoundingPolicy = field(default=DEFAULT_ROUNDING)

    @classmethod
    def for_binding(cls, binding: LocationBinding, **overrides: Any) -> "VerificationConfig":
        """Build a config targeting a message's location binding."""
        config = cls(
            target_latitude=binding.latitude,
            target_longitude=binding.longitude,
            radius_m=binding.radius_m,
            window_start=binding.window_start,
            window_end=binding.window_end,
        )
        return replace(config, **overrides) if overrides else config


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verify_attestation(); anything not valid is a denial."""
    valid: bool
    reason: Optional[ReasonCode] = None
    distance: Optional[float] = None
    detail: str = ""

    @classmethod
    def ok(cls, distance: float) -> "VerificationResult":
        return cls(valid=True, distance=distance, detail="All checks passed")

    @classmethod
    def reject(
        cls,
        reason: ReasonCode,
        detail: str,
        distance: Optional[float] = None,
    ) -> "VerificationResult":
        return cls(valid=False, reason=reason, distance=distance, detail=detail)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "valid": self.valid,
            "reason": self.reason.value if self.reason else None,
            "distance": self.distance,
            "detail": self.detail,
        }


def verify_attestation(
    attestation: LocationAttestation,
    config: VerificationConfig,
    now_ms: Optional[int] = None,
    registry: Optional[DeviceRegistry] = None,
) -> VerificationResult:
    """
    Run the verification pipeline over one attestation.

    Args:
        attestation: Signed location claim
        config: Target and thresholds
        now_ms: Current time in epoch ms (default: wall clock)
        registry: Optional device registry; when given, the attestation's
            key must be the one registered for its device id

    Returns:
        VerificationResult; distance is only set once the geofence check ran
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    if not verify_attestation_signature(attestation, config.rounding):
        return VerificationResult.reject(
            ReasonCode.INVALID_SIGNATURE,
            "Invalid signature - attestation has been tampered with",
        )

    if registry is not None and not registry.matches(
        attestation.device_id, attestation.device_public_key
    ):
        return VerificationResult.reject(
            ReasonCode.UNREGISTERED_DEVICE,
            f"Device {attestation.device_id} is not registered with this key",
        )

    age = now_ms - attestation.timestamp
    if age < 0 or age > config.max_age_ms:
        return VerificationResult.reject(
            ReasonCode.STALE_ATTESTATION,
            f"Attestation age {age}ms outside 0..{config.max_age_ms}ms",
        )

    if not config.window_start <= attestation.timestamp <= config.window_end:
        return VerificationResult.reject(
            ReasonCode.OUTSIDE_TIME_WINDOW,
            "Attestation timestamp outside allowed time window",
        )

    inside, distance = within_geofence(
        attestation.latitude,
        attestation.longitude,
        config.target_latitude,
        config.target_longitude,
        config.radius_m,
    )
    if not inside:
        return VerificationResult.reject(
            ReasonCode.OUTSIDE_GEOFENCE,
            f"Location outside geofence: {format_distance(distance)} from target "
            f"(max: {format_distance(config.radius_m)})",
            distance,
        )

    history = sorted(attestation.movement_history, key=lambda p: p.timestamp)

    if len(history) >= 2:
        try:
            speed = max_speed(history)
        except ValueError as e:
            return VerificationResult.reject(
                ReasonCode.IMPLAUSIBLE_MOVEMENT,
                f"Malformed movement history: {e}",
                distance,
            )
        if speed > config.max_speed_mps:
            return VerificationResult.reject(
                ReasonCode.IMPLAUSIBLE_MOVEMENT,
                f"Impossible speed detected: {speed:.2f} m/s "
                f"(max: {config.max_speed_mps} m/s)",
                distance,
            )

    if config.require_continuous_presence:
        span = longest_presence_span(
            history,
            config.target_latitude,
            config.target_longitude,
            config.radius_m,
        )
        if not history or span < config.min_presence_ms:
            return VerificationResult.reject(
                ReasonCode.INSUFFICIENT_PRESENCE,
                f"Insufficient continuous presence: {span / 1000:.1f}s "
                f"(required: {config.min_presence_ms / 1000:.1f}s)",
                distance,
            )

    return VerificationResult.ok(distance)
