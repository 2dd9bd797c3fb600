"""
Geolock - Location-Bound Messaging

Messages that can only be opened at a place and within a time window.

Usage:
    from geolock import (
        LocationBinding, seal_for_recipient, unseal_from_sender,
        create_attestation, verify_attestation, VerificationConfig,
    )

    # Sender: seal to a 100 m circle for one hour
    binding = LocationBinding.create(18.5204, 73.8567, 100, start_ms, start_ms + 3_600_000)
    sealed = seal_for_recipient(b"secret", sender_private, recipient_public, binding)

    # Recipient: prove presence, then open
    attestation = create_attestation("phone-1", device_key, lat, lon, accuracy=5.0)
    result = verify_attestation(attestation, VerificationConfig.for_binding(binding))
    if result.valid:
        plaintext = unseal_from_sender(sealed, recipient_private)

Security:
    Geolock uses X25519 + HKDF-SHA256 + AES-256-GCM for sealing and
    Ed25519 for location attestations.
"""

__version__ = "0.1.0"
__license__ = "CC0-1.0"

from geolock.primitives import (
    AuthenticationFailure,
    NonceLedger,
    NonceReuseError,
    derive_shared_secret,
    generate_exchange_keypair,
    generate_signing_keypair,
)
from geolock.kdf import (
    LocationBinding,
    RoundingPolicy,
    derive_location_key,
    hkdf,
    hkdf_expand,
    hkdf_extract,
)
from geolock.sealing import (
    DecryptionError,
    MessageMetadata,
    SealedMessage,
    seal,
    seal_for_recipient,
    unseal,
    unseal_from_sender,
    unseal_with_secret,
    unwrap_content_key,
)
from geolock.attestation import (
    LocationAttestation,
    MovementPoint,
    create_attestation,
    verify_attestation_signature,
)
from geolock.verification import (
    ReasonCode,
    VerificationConfig,
    VerificationResult,
    verify_attestation,
)
from geolock.devices import DeviceRegistry
from geolock.storage import InMemoryMessageStore, MessageStore

__all__ = [
    # Primitives
    "AuthenticationFailure",
    "NonceLedger",
    "NonceReuseError",
    "derive_shared_secret",
    "generate_exchange_keypair",
    "generate_signing_keypair",
    # Key derivation
    "LocationBinding",
    "RoundingPolicy",
    "derive_location_key",
    "hkdf",
    "hkdf_expand",
    "hkdf_extract",
    # Sealing
    "DecryptionError",
    "MessageMetadata",
    "SealedMessage",
    "seal",
    "seal_for_recipient",
    "unseal",
    "unseal_from_sender",
    "unseal_with_secret",
    "unwrap_content_key",
    # Attestation
    "LocationAttestation",
    "MovementPoint",
    "create_attestation",
    "verify_attestation_signature",
    # Verification
    "ReasonCode",
    "VerificationConfig",
    "VerificationResult",
    "verify_attestation",
    # Collaborators
    "DeviceRegistry",
    "InMemoryMessageStore",
    "MessageStore",
]
