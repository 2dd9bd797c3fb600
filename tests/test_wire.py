"""Tests for the geolock wire format."""

import os
import pytest
from geolock.attestation import MovementPoint, create_attestation, verify_attestation_signature
from geolock.kdf import LocationBinding
from geolock.primitives import generate_exchange_keypair, generate_signing_keypair
from geolock.sealing import MessageMetadata, seal_for_recipient, unseal_from_sender
from geolock.wire import (
    DeviceRegistration,
    WireFormatError,
    attestation_from_dict,
    attestation_to_dict,
    binding_from_dict,
    binding_to_dict,
    decode_bytes,
    encode_bytes,
    sealed_from_dict,
    sealed_to_dict,
)


@pytest.fixture
def binding():
    return LocationBinding(18.5204, 73.8567, 100, 1000, 2000, b"test-nonce")


class TestBinding:
    """Test location binding encoding."""

    def test_field_names(self, binding):
        """camelCase names and base64 nonce."""
        assert binding_to_dict(binding) == {
            "latitude": 18.5204,
            "longitude": 73.8567,
            "radiusMeters": 100.0,
            "windowStart": 1000,
            "windowEnd": 2000,
            "nonce": "dGVzdC1ub25jZQ==",
        }

    def test_parse(self, binding):
        assert binding_from_dict(binding_to_dict(binding)) == binding

    @pytest.mark.parametrize("change", [
        {"latitude": 91},
        {"radiusMeters": 0},
        {"windowStart": 3000},
        {"nonce": "not base64!"},
        {"nonce": ""},
    ])
    def test_invalid(self, binding, change):
        data = {**binding_to_dict(binding), **change}
        with pytest.raises(WireFormatError):
            binding_from_dict(data)

    def test_missing_field(self, binding):
        data = binding_to_dict(binding)
        del data["windowEnd"]
        with pytest.raises(WireFormatError):
            binding_from_dict(data)


class TestSealedMessage:
    """Test sealed message encoding."""

    def test_transport_and_open(self, binding):
        """A sealed message survives JSON transport and still opens."""
        _, sender_priv = generate_exchange_keypair()
        recipient_pub, recipient_priv = generate_exchange_keypair()
        sealed = seal_for_recipient(
            b"hello", sender_priv, recipient_pub, binding,
            metadata=MessageMetadata(title="Hi", created=10, expires_at=2000),
        )
        data = sealed_to_dict(sealed)
        assert set(data) == {
            "encryptedPayload", "payloadNonce", "payloadAuthTag",
            "wrappedKey", "wrappedKeyNonce", "wrappedKeyAuthTag",
            "locationBinding", "senderPublicKey", "recipientPublicKey", "metadata",
        }
        assert data["metadata"] == {"title": "Hi", "created": 10, "expiresAt": 2000}
        parsed = sealed_from_dict(data)
        assert parsed == sealed
        assert unseal_from_sender(parsed, recipient_priv) == b"hello"

    def test_bad_base64(self, binding):
        _, sender_priv = generate_exchange_keypair()
        recipient_pub, _ = generate_exchange_keypair()
        data = sealed_to_dict(seal_for_recipient(b"x", sender_priv, recipient_pub, binding))
        data["wrappedKey"] = "%%%"
        with pytest.raises(WireFormatError):
            sealed_from_dict(data)


class TestAttestation:
    """Test attestation encoding."""

    def test_transport_keeps_signature_valid(self):
        _, private = generate_signing_keypair()
        att = create_attestation(
            "phone", private, 18.5204, 73.8567, accuracy=4.5,
            movement_history=[MovementPoint(18.5204, 73.8567, 900)], timestamp=1000,
        )
        data = attestation_to_dict(att)
        assert data["deviceId"] == "phone"
        assert data["movementHistory"] == [{"lat": 18.5204, "lon": 73.8567, "timestamp": 900}]
        parsed = attestation_from_dict(data)
        assert parsed == att
        assert verify_attestation_signature(parsed)

    def test_negative_accuracy(self):
        _, private = generate_signing_keypair()
        data = attestation_to_dict(create_attestation("p", private, 0.0, 0.0, accuracy=1.0, timestamp=1))
        data["accuracy"] = -1
        with pytest.raises(WireFormatError):
            attestation_from_dict(data)

    def test_missing_signature(self):
        _, private = generate_signing_keypair()
        data = attestation_to_dict(create_attestation("p", private, 0.0, 0.0, accuracy=1.0, timestamp=1))
        del data["signature"]
        with pytest.raises(WireFormatError):
            attestation_from_dict(data)


class TestHelpers:
    """Test base64 helpers and small models."""

    def test_bytes_roundtrip(self):
        value = os.urandom(32)
        assert decode_bytes(encode_bytes(value)) == value

    def test_decode_invalid(self):
        with pytest.raises(WireFormatError):
            decode_bytes("***")

    def test_device_registration_key_length(self):
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            DeviceRegistration.model_validate({"deviceId": "d", "publicKey": encode_bytes(b"short")})
