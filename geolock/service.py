"""
Message service - storage and server-side unlock around the core.

The service stores sealed messages (ciphertext and wrapped key only),
and for the server-attestation flow runs the verification pipeline and
releases the wrapped content key fields when it passes. It never sees
shared secrets or location-bound keys; the client unwraps locally.

Example:
    >>> service = MessageService(InMemoryMessageStore())
    >>> service.store_message("m1", sealed)
    >>> outcome = service.unlock("m1", attestation)
    >>> outcome.unlocked, outcome.distance
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from geolock.attestation import LocationAttestation, verify_attestation_signature
from geolock.config import Settings
from geolock.devices import DeviceRegistry
from geolock.geo import format_coordinates, format_distance
from geolock.sealing import SealedMessage
from geolock.storage import MessageNotFound, MessageStore
from geolock.verification import (
    ReasonCode,
    VerificationConfig,
    verify_attestation,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnlockOutcome:
    """What the service hands back for an unlock attempt."""
    unlocked: bool
    distance: Optional[float] = None
    reason: Optional[ReasonCode] = None
    detail: str = ""
    wrapped_key: Optional[bytes] = None
    wrap_nonce: Optional[bytes] = None
    wrap_tag: Optional[bytes] = None


class MessageService:
    """
    Store sealed messages and gate release of their wrapped keys.

    Args:
        store: Message store implementation
        settings: Verification thresholds (default: Settings())
        registry: Optional device registry; when set, unlocks require a
            registered device key
        clock: Callable returning the current time in epoch ms
    """

    def __init__(
        self,
        store: MessageStore,
        settings: Optional[Settings] = None,
        registry: Optional[DeviceRegistry] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.store = store
        self.settings = settings or Settings()
        self.registry = registry
        self._clock = clock or (lambda: int(time.time() * 1000))

    def store_message(self, message_id: str, sealed: SealedMessage) -> int:
        """
        Store a sealed message until the end of its unlock window.

        Returns:
            Expiry time in epoch ms

        Raises:
            MessageExists: If the id is taken
        """
        expires_at = sealed.binding.window_end
        self.store.put(message_id, sealed, expires_at)
        logger.info(
            "Stored message %s bound to %s (r=%s)",
            message_id,
            format_coordinates(sealed.binding.latitude, sealed.binding.longitude),
            format_distance(sealed.binding.radius_m),
        )
        return expires_at

    def get_sealed(self, message_id: str) -> SealedMessage:
        """
        Get a stored message.

        Raises:
            MessageNotFound: If the id is unknown or expired
        """
        sealed = self.store.get(message_id)
        if sealed is None:
            raise MessageNotFound(message_id)
        return sealed

    def get_metadata(self, message_id: str) -> Dict[str, Any]:
        """Public description of a message: binding, metadata, public keys."""
        sealed = self.get_sealed(message_id)
        return {
            "id": message_id,
            "binding": sealed.binding,
            "metadata": sealed.metadata,
            "sender_public_key": sealed.sender_public_key,
            "recipient_public_key": sealed.recipient_public_key,
        }

    def list_messages(self) -> List[Dict[str, Any]]:
        """Summaries of all live messages."""
        return [
            {
                "id": message_id,
                "title": sealed.metadata.title,
                "location": format_coordinates(
                    sealed.binding.latitude, sealed.binding.longitude
                ),
                "radius": sealed.binding.radius_m,
                "created": sealed.metadata.created,
                "expiresAt": sealed.binding.window_end,
            }
            for message_id, sealed in self.store.list()
        ]

    def delete_message(self, message_id: str) -> None:
        """
        Delete a message.

        Raises:
            MessageNotFound: If nothing was deleted
        """
        if not self.store.delete(message_id):
            raise MessageNotFound(message_id)
        logger.info("Deleted message %s", message_id)

    def register_device(self, device_id: str, public_key: bytes) -> None:
        """
        Bind a device id to its signing key.

        Raises:
            RuntimeError: If the service has no registry
            DeviceKeyMismatch: If the device has a different key
        """
        if self.registry is None:
            raise RuntimeError("Device registration is not enabled")
        self.registry.register(device_id, public_key)
        logger.info("Registered device %s", device_id)

    def verification_config(self, sealed: SealedMessage) -> VerificationConfig:
        """Verification thresholds for a stored message."""
        return VerificationConfig.for_binding(
            sealed.binding,
            max_age_ms=self.settings.max_attestation_age_ms,
            max_speed_mps=self.settings.max_speed_mps,
            require_continuous_presence=self.settings.require_continuous_presence,
            min_presence_ms=self.settings.min_presence_ms,
            rounding=self.settings.rounding,
        )

    def unlock(self, message_id: str, attestation: LocationAttestation) -> UnlockOutcome:
        """
        Verify an attestation and release the wrapped key on success.

        Raises:
            MessageNotFound: If the id is unknown or expired
        """
        sealed = self.get_sealed(message_id)

        registry = self.registry
        if (
            registry is not None
            and registry.trust_on_first_use
            and attestation.device_id not in registry
            and verify_attestation_signature(attestation, self.settings.rounding)
        ):
            registry.pin(attestation.device_id, attestation.device_public_key)
            logger.info("Pinned key for device %s on first use", attestation.device_id)

        result = verify_attestation(
            attestation,
            self.verification_config(sealed),
            now_ms=self._clock(),
            registry=registry,
        )

        if not result.valid:
            logger.info(
                "Unlock failed for %s: %s (%s)",
                message_id, result.reason.value, result.detail,
            )
            return UnlockOutcome(
                unlocked=False,
                distance=result.distance,
                reason=result.reason,
                detail=result.detail,
            )

        logger.info(
            "Unlock succeeded for %s at distance %s",
            message_id, format_distance(result.distance),
        )
        return UnlockOutcome(
            unlocked=True,
            distance=result.distance,
            wrapped_key=sealed.wrapped_key,
            wrap_nonce=sealed.wrap_nonce,
            wrap_tag=sealed.wrap_tag,
        )
