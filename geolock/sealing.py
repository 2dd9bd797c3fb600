"""
Geolock Sealing - Location-bound message encryption.

The payload is encrypted under a random content key, and the content key
is wrapped under the location-bound key. Only a party that can re-derive
the location-bound key (same shared secret, same binding) can unwrap it.

Example:
    >>> from geolock.sealing import seal, unseal_with_secret
    >>> sealed = seal(b"meet at the fountain", shared_secret, binding)
    >>> unseal_with_secret(sealed, shared_secret)
    b'meet at the fountain'
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from geolock.kdf import (
    DEFAULT_ROUNDING,
    LocationBinding,
    RoundingPolicy,
    derive_location_key,
)
from geolock.primitives import (
    KEY_SIZE,
    AuthenticationFailure,
    NonceLedger,
    aead_decrypt,
    aead_encrypt,
    derive_shared_secret,
    exchange_public_key,
    random_bytes,
)


class DecryptionError(AuthenticationFailure):
    """Raised when a sealed message cannot be opened."""

    def __init__(self):
        super().__init__("Unable to decrypt message")


@dataclass(frozen=True)
class MessageMetadata:
    """Non-secret descriptive fields stored alongside a sealed message."""
    title: Optional[str] = None
    created: int = field(default_factory=lambda: int(time.time() * 1000))
    expires_at: Optional[int] = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "title": self.title,
            "created": self.created,
            "expiresAt": self.expires_at,
        }


@dataclass(frozen=True)
class SealedMessage:
    """Ciphertext, wrapped content key and the binding needed to re-derive."""
    content_ciphertext: bytes
    content_nonce: bytes
    content_tag: bytes
    wrapped_key: bytes
    wrap_nonce: bytes
    wrap_tag: bytes
    binding: LocationBinding
    sender_public_key: bytes = b""
    recipient_public_key: bytes = b""
    metadata: MessageMetadata = field(default_factory=MessageMetadata)


def seal(
    plaintext: bytes,
    shared_secret: bytes,
    binding: LocationBinding,
    sender_public_key: bytes = b"",
    recipient_public_key: bytes = b"",
    metadata: Optional[MessageMetadata] = None,
    policy: RoundingPolicy = DEFAULT_ROUNDING,
    ledger: Optional[NonceLedger] = None,
) -> SealedMessage:
    """
    Seal a message to a location and time window.

    Args:
        plaintext: Message bytes
        shared_secret: 32-byte X25519 shared secret
        binding: Geofence and time window
        sender_public_key: Sender's X25519 public key (stored for the recipient)
        recipient_public_key: Recipient's X25519 public key
        metadata: Optional descriptive metadata; expires_at defaults to
            the end of the binding window
        policy: Coordinate rounding policy
        ledger: Optional nonce ledger passed to every encryption

    Returns:
        SealedMessage
    """
    if metadata is None:
        metadata = MessageMetadata(expires_at=binding.window_end)

    content_key = random_bytes(KEY_SIZE)
    ciphertext, nonce, tag = aead_encrypt(plaintext, content_key, ledger=ledger)

    location_key = derive_location_key(shared_secret, binding, policy)
    wrapped, wrap_nonce, wrap_tag = aead_encrypt(content_key, location_key, ledger=ledger)

    return SealedMessage(
        content_ciphertext=ciphertext,
        content_nonce=nonce,
        content_tag=tag,
        wrapped_key=wrapped,
        wrap_nonce=wrap_nonce,
        wrap_tag=wrap_tag,
        binding=binding,
        sender_public_key=sender_public_key,
        recipient_public_key=recipient_public_key,
        metadata=metadata,
    )


def unwrap_content_key(
    wrapped_key: bytes,
    wrap_nonce: bytes,
    wrap_tag: bytes,
    location_key: bytes,
) -> bytes:
    """
    Recover the content key with a location-bound key.

    Raises:
        DecryptionError: If the location key is wrong or the fields were
            tampered with
    """
    try:
        content_key = aead_decrypt(wrapped_key, location_key, wrap_nonce, wrap_tag)
    except AuthenticationFailure:
        raise DecryptionError() from None

    if len(content_key) != KEY_SIZE:
        raise DecryptionError()
    return content_key


def open_content(sealed: SealedMessage, content_key: bytes) -> bytes:
    """Decrypt the payload with an already unwrapped content key."""
    try:
        return aead_decrypt(
            sealed.content_ciphertext,
            content_key,
            sealed.content_nonce,
            sealed.content_tag,
        )
    except AuthenticationFailure:
        raise DecryptionError() from None


def unseal(sealed: SealedMessage, location_key: bytes) -> bytes:
    """
    Open a sealed message with a location-bound key.

    Both stages fail with the same DecryptionError; there is no partial
    plaintext.
    """
    content_key = unwrap_content_key(
        sealed.wrapped_key, sealed.wrap_nonce, sealed.wrap_tag, location_key
    )
    return open_content(sealed, content_key)


def unseal_with_secret(
    sealed: SealedMessage,
    shared_secret: bytes,
    policy: RoundingPolicy = DEFAULT_ROUNDING,
) -> bytes:
    """Re-derive the location key from the embedded binding and unseal."""
    return unseal(sealed, derive_location_key(shared_secret, sealed.binding, policy))


def seal_for_recipient(
    plaintext: bytes,
    sender_private_key: bytes,
    recipient_public_key: bytes,
    binding: LocationBinding,
    metadata: Optional[MessageMetadata] = None,
    policy: RoundingPolicy = DEFAULT_ROUNDING,
) -> SealedMessage:
    """
    Perform the X25519 exchange and seal in one step.

    Args:
        plaintext: Message bytes
        sender_private_key: Sender's ephemeral X25519 private key
        recipient_public_key: Recipient's X25519 public key
        binding: Geofence and time window

    Returns:
        SealedMessage carrying both public keys
    """
    shared_secret = derive_shared_secret(sender_private_key, recipient_public_key)
    return seal(
        plaintext,
        shared_secret,
        binding,
        sender_public_key=exchange_public_key(sender_private_key),
        recipient_public_key=recipient_public_key,
        metadata=metadata,
        policy=policy,
    )


def unseal_from_sender(
    sealed: SealedMessage,
    recipient_private_key: bytes,
    policy: RoundingPolicy = DEFAULT_ROUNDING,
) -> bytes:
    """Recipient side of seal_for_recipient()."""
    shared_secret = derive_shared_secret(recipient_private_key, sealed.sender_public_key)
    return unseal_with_secret(sealed, shared_secret, policy)
