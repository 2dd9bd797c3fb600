"""
Geolock Primitives - Key exchange, signatures and authenticated encryption.

Thin adapter over the ``cryptography`` library so the rest of the package
only ever sees raw bytes:

1. X25519: ephemeral key exchange between sender and recipient
2. Ed25519: device signatures over location attestations
3. AES-256-GCM: authenticated encryption of payloads and wrapped keys

Example:
    >>> from geolock.primitives import generate_exchange_keypair, derive_shared_secret
    >>> alice_pub, alice_priv = generate_exchange_keypair()
    >>> bob_pub, bob_priv = generate_exchange_keypair()
    >>> derive_shared_secret(alice_priv, bob_pub) == derive_shared_secret(bob_priv, alice_pub)
    True
"""

import hashlib
import hmac
import os
import threading
from typing import Dict, Optional, Set, Tuple

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, x25519
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

# Sizes in bytes
KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
SIGNATURE_SIZE = 64

_RAW = serialization.Encoding.Raw
_RAW_PUBLIC = serialization.PublicFormat.Raw
_RAW_PRIVATE = serialization.PrivateFormat.Raw


class AuthenticationFailure(Exception):
    """Raised when authenticated decryption fails."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class NonceReuseError(RuntimeError):
    """Raised when a nonce would be used twice under the same key."""


class NonceLedger:
    """
    Caller-owned record of AES-GCM nonces issued per key.

    Nonces are drawn from the OS random generator, so a repeat means the
    generator is broken. Callers that encrypt many messages under one
    long-lived key can pass a ledger to ``aead_encrypt`` to turn that into
    a hard failure.

    Entries only grow while a key is in use. Keep a ledger no longer than
    the key it guards, or call ``forget()`` when the key is retired.
    """

    def __init__(self):
        self._seen: Dict[bytes, Set[bytes]] = {}
        self._lock = threading.Lock()

    def record(self, key: bytes, nonce: bytes) -> None:
        """
        Record a nonce for a key.

        Raises:
            NonceReuseError: If the nonce was already recorded for this key
        """
        with self._lock:
            used = self._seen.setdefault(self._fingerprint(key), set())
            if nonce in used:
                raise NonceReuseError("AES-GCM nonce reused under the same key")
            used.add(nonce)

    def forget(self, key: bytes) -> int:
        """Drop every nonce recorded for a retired key, returning how many."""
        with self._lock:
            return len(self._seen.pop(self._fingerprint(key), ()))

    @staticmethod
    def _fingerprint(key: bytes) -> bytes:
        return hashlib.sha256(b"nonce-ledger:" + key).digest()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(nonces) for nonces in self._seen.values())


def random_bytes(length: int) -> bytes:
    """Return ``length`` bytes from the OS random generator."""
    return os.urandom(length)


def _require_length(name: str, value: bytes, expected: int) -> None:
    if len(value) != expected:
        raise ValueError(f"{name} must be {expected} bytes, got {len(value)}")


# ============================================================================
# X25519
# ============================================================================

def generate_exchange_keypair() -> Tuple[bytes, bytes]:
    """
    Generate an ephemeral X25519 key pair.

    Returns:
        Tuple of (public_key, private_key), 32 raw bytes each
    """
    private_key = x25519.X25519PrivateKey.generate()
    return (
        private_key.public_key().public_bytes(_RAW, _RAW_PUBLIC),
        private_key.private_bytes(_RAW, _RAW_PRIVATE, serialization.NoEncryption()),
    )


def exchange_public_key(private_key: bytes) -> bytes:
    """Return the X25519 public key for a raw private key."""
    _require_length("X25519 private key", private_key, KEY_SIZE)
    key = x25519.X25519PrivateKey.from_private_bytes(private_key)
    return key.public_key().public_bytes(_RAW, _RAW_PUBLIC)


def derive_shared_secret(my_private: bytes, their_public: bytes) -> bytes:
    """
    Compute the X25519 shared secret.

    Both parties get the same 32 bytes from their own private key and
    the peer's public key.

    Args:
        my_private: Our 32-byte X25519 private key
        their_public: Peer's 32-byte X25519 public key

    Returns:
        32-byte shared secret

    Raises:
        ValueError: If a key has the wrong length or the peer key is a
            low-order point
    """
    _require_length("X25519 private key", my_private, KEY_SIZE)
    _require_length("X25519 public key", their_public, KEY_SIZE)

    private_key = x25519.X25519PrivateKey.from_private_bytes(my_private)
    public_key = x25519.X25519PublicKey.from_public_bytes(their_public)
    # cryptography raises ValueError for an all-zero result
    return private_key.exchange(public_key)


# ============================================================================
# Ed25519
# ============================================================================

def generate_signing_keypair() -> Tuple[bytes, bytes]:
    """
    Generate an Ed25519 device signing key pair.

    Returns:
        Tuple of (public_key, private_key); the private key is the 32-byte seed
    """
    private_key = ed25519.Ed25519PrivateKey.generate()
    return (
        private_key.public_key().public_bytes(_RAW, _RAW_PUBLIC),
        private_key.private_bytes(_RAW, _RAW_PRIVATE, serialization.NoEncryption()),
    )


def signing_public_key(private_key: bytes) -> bytes:
    """Return the Ed25519 public key for a raw private key."""
    _require_length("Ed25519 private key", private_key, KEY_SIZE)
    key = ed25519.Ed25519PrivateKey.from_private_bytes(private_key)
    return key.public_key().public_bytes(_RAW, _RAW_PUBLIC)


def sign(message: bytes, private_key: bytes) -> bytes:
    """
    Sign a message with Ed25519.

    Args:
        message: Bytes to sign
        private_key: 32-byte Ed25519 private key

    Returns:
        64-byte detached signature
    """
    _require_length("Ed25519 private key", private_key, KEY_SIZE)
    key = ed25519.Ed25519PrivateKey.from_private_bytes(private_key)
    return key.sign(message)


def verify(message: bytes, signature: bytes, public_key: bytes) -> bool:
    """
    Verify an Ed25519 signature.

    Malformed keys and signatures verify as False rather than raising.

    Returns:
        True if the signature is valid for message and key
    """
    if len(signature) != SIGNATURE_SIZE or len(public_key) != KEY_SIZE:
        return False
    try:
        key = ed25519.Ed25519PublicKey.from_public_bytes(public_key)
        key.verify(signature, message)
    except (InvalidSignature, ValueError):
        return False
    return True


# ============================================================================
# AES-256-GCM
# ============================================================================

def aead_encrypt(
    plaintext: bytes,
    key: bytes,
    associated_data: Optional[bytes] = None,
    ledger: Optional[NonceLedger] = None,
) -> Tuple[bytes, bytes, bytes]:
    """
    Encrypt with AES-256-GCM under a fresh random 96-bit nonce.

    Args:
        plaintext: Data to encrypt
        key: 32-byte key
        associated_data: Optional data authenticated but not encrypted
        ledger: Optional nonce ledger enforcing per-key uniqueness

    Returns:
        Tuple of (ciphertext, nonce, tag)

    Raises:
        ValueError: If key is not 32 bytes
        NonceReuseError: If the ledger has already seen the nonce
    """
    _require_length("AES-256-GCM key", key, KEY_SIZE)

    nonce = os.urandom(NONCE_SIZE)
    if ledger is not None:
        ledger.record(key, nonce)

    sealed = AESGCM(key).encrypt(nonce, plaintext, associated_data)
    return sealed[:-TAG_SIZE], nonce, sealed[-TAG_SIZE:]


def aead_decrypt(
    ciphertext: bytes,
    key: bytes,
    nonce: bytes,
    tag: bytes,
    associated_data: Optional[bytes] = None,
) -> bytes:
    """
    Decrypt and authenticate AES-256-GCM data.

    Args:
        ciphertext: Encrypted data without the tag
        key: 32-byte key
        nonce: 12-byte nonce used at encryption
        tag: 16-byte authentication tag

    Returns:
        Plaintext bytes

    Raises:
        AuthenticationFailure: Wrong key, tampered data or malformed input
    """
    if len(key) != KEY_SIZE or len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
        raise AuthenticationFailure()
    try:
        return AESGCM(key).decrypt(nonce, ciphertext + tag, associated_data)
    except InvalidTag:
        raise AuthenticationFailure() from None


def constant_time_equal(a: bytes, b: bytes) -> bool:
    """Compare two byte strings in constant time."""
    return hmac.compare_digest(a, b)
