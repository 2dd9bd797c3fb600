"""
Wire format - validated JSON models for the service boundary.

Binary fields travel as standard base64 strings and field names use the
camelCase spelling clients send. Every body is parsed into one of these
models, then converted to the core dataclasses, before it reaches the
core; malformed input is rejected here.

Usage:
    data = sealed_to_dict(sealed)            # JSON-ready dict
    sealed = sealed_from_dict(data)          # raises WireFormatError
"""

import base64
import binascii
from typing import Annotated, Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    model_validator,
)

from geolock.attestation import LocationAttestation, MovementPoint
from geolock.kdf import LocationBinding
from geolock.sealing import MessageMetadata, SealedMessage


class WireFormatError(ValueError):
    """Raised when boundary input cannot be parsed."""


def _decode_b64(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64: {e}") from None
    return value


def _encode_b64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


Base64Bytes = Annotated[
    bytes,
    BeforeValidator(_decode_b64),
    PlainSerializer(_encode_b64, return_type=str),
]


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class LocationBindingModel(_WireModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius_m: float = Field(alias="radiusMeters", gt=0)
    window_start: int = Field(alias="windowStart")
    window_end: int = Field(alias="windowEnd")
    nonce: Base64Bytes = Field(min_length=1)

    @model_validator(mode="after")
    def _window_ordered(self) -> "LocationBindingModel":
        if self.window_start > self.window_end:
            raise ValueError("windowStart must not be after windowEnd")
        return self

    def to_domain(self) -> LocationBinding:
        return LocationBinding(
            latitude=self.latitude,
            longitude=self.longitude,
            radius_m=self.radius_m,
            window_start=self.window_start,
            window_end=self.window_end,
            nonce=self.nonce,
        )

    @classmethod
    def from_domain(cls, binding: LocationBinding) -> "LocationBindingModel":
        return cls(
            latitude=binding.latitude,
            longitude=binding.longitude,
            radius_m=binding.radius_m,
            window_start=binding.window_start,
            window_end=binding.window_end,
            nonce=binding.nonce,
        )


class MetadataModel(_WireModel):
    title: Optional[str] = None
    created: Optional[int] = None
    expires_at: Optional[int] = Field(default=None, alias="expiresAt")

    def to_domain(self) -> MessageMetadata:
        if self.created is None:
            return MessageMetadata(title=self.title, expires_at=self.expires_at)
        return MessageMetadata(title=self.title, created=self.created, expires_at=self.expires_at)


class SealedMessageModel(_WireModel):
    content_ciphertext: Base64Bytes = Field(alias="encryptedPayload")
    content_nonce: Base64Bytes = Field(alias="payloadNonce")
    content_tag: Base64Bytes = Field(alias="payloadAuthTag")
    wrapped_key: Base64Bytes = Field(alias="wrappedKey")
    wrap_nonce: Base64Bytes = Field(alias="wrappedKeyNonce")
    wrap_tag: Base64Bytes = Field(alias="wrappedKeyAuthTag")
    binding: LocationBindingModel = Field(alias="locationBinding")
    sender_public_key: Base64Bytes = Field(default=b"", alias="senderPublicKey")
    recipient_public_key: Base64Bytes = Field(default=b"", alias="recipientPublicKey")
    metadata: MetadataModel = Field(default_factory=MetadataModel)

    def to_domain(self) -> SealedMessage:
        return SealedMessage(
            content_ciphertext=self.content_ciphertext,
            content_nonce=self.content_nonce,
            content_tag=self.content_tag,
            wrapped_key=self.wrapped_key,
            wrap_nonce=self.wrap_nonce,
            wrap_tag=self.wrap_tag,
            binding=self.binding.to_domain(),
            sender_public_key=self.sender_public_key,
            recipient_public_key=self.recipient_public_key,
            metadata=self.metadata.to_domain(),
        )

    @classmethod
    def from_domain(cls, sealed: SealedMessage) -> "SealedMessageModel":
        meta = sealed.metadata
        return cls(
            content_ciphertext=sealed.content_ciphertext,
            content_nonce=sealed.content_nonce,
            content_tag=sealed.content_tag,
            wrapped_key=sealed.wrapped_key,
            wrap_nonce=sealed.wrap_nonce,
            wrap_tag=sealed.wrap_tag,
            binding=LocationBindingModel.from_domain(sealed.binding),
            sender_public_key=sealed.sender_public_key,
            recipient_public_key=sealed.recipient_public_key,
            metadata=MetadataModel(
                title=meta.title, created=meta.created, expires_at=meta.expires_at
            ),
        )


class StoreMessageRequest(SealedMessageModel):
    id: str = Field(min_length=1, max_length=128)


class MovementPointModel(_WireModel):
    latitude: float = Field(alias="lat", ge=-90, le=90)
    longitude: float = Field(alias="lon", ge=-180, le=180)
    timestamp: int


class AttestationModel(_WireModel):
    device_id: str = Field(alias="deviceId", min_length=1)
    device_public_key: Base64Bytes = Field(alias="devicePublicKey")
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    accuracy: float = Field(ge=0)
    timestamp: int
    movement_history: List[MovementPointModel] = Field(
        default_factory=list, alias="movementHistory"
    )
    signature: Base64Bytes

    def to_domain(self) -> LocationAttestation:
        return LocationAttestation(
            device_id=self.device_id,
            device_public_key=self.device_public_key,
            latitude=self.latitude,
            longitude=self.longitude,
            accuracy=self.accuracy,
            timestamp=self.timestamp,
            signature=self.signature,
            movement_history=tuple(
                MovementPoint(p.latitude, p.longitude, p.timestamp)
                for p in self.movement_history
            ),
        )

    @classmethod
    def from_domain(cls, attestation: LocationAttestation) -> "AttestationModel":
        return cls(
            device_id=attestation.device_id,
            device_public_key=attestation.device_public_key,
            latitude=attestation.latitude,
            longitude=attestation.longitude,
            accuracy=attestation.accuracy,
            timestamp=attestation.timestamp,
            movement_history=[
                MovementPointModel(latitude=p.latitude, longitude=p.longitude, timestamp=p.timestamp)
                for p in attestation.movement_history
            ],
            signature=attestation.signature,
        )


class UnlockRequest(_WireModel):
    attestation: AttestationModel


class DeviceRegistration(_WireModel):
    device_id: str = Field(alias="deviceId", min_length=1)
    public_key: Base64Bytes = Field(alias="publicKey", min_length=32, max_length=32)


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


def _parse(model_cls, data: Dict[str, Any]):
    try:
        return model_cls.model_validate(data).to_domain()
    except (ValidationError, ValueError) as e:
        raise WireFormatError(str(e)) from None


def binding_to_dict(binding: LocationBinding) -> Dict[str, Any]:
    return _dump(LocationBindingModel.from_domain(binding))


def binding_from_dict(data: Dict[str, Any]) -> LocationBinding:
    return _parse(LocationBindingModel, data)


def sealed_to_dict(sealed: SealedMessage) -> Dict[str, Any]:
    return _dump(SealedMessageModel.from_domain(sealed))


def sealed_from_dict(data: Dict[str, Any]) -> SealedMessage:
    return _parse(SealedMessageModel, data)


def attestation_to_dict(attestation: LocationAttestation) -> Dict[str, Any]:
    return _dump(AttestationModel.from_domain(attestation))


def attestation_from_dict(data: Dict[str, Any]) -> LocationAttestation:
    return _parse(AttestationModel, data)


def encode_bytes(value: bytes) -> str:
    """Standard base64 text for a binary field."""
    return _encode_b64(value)


def decode_bytes(value: str) -> bytes:
    """
    Decode a base64 field.

    Raises:
        WireFormatError: If the text is not valid base64
    """
    try:
        return base64.b64decode(value, validate=True)
    except binascii.Error as e:
        raise WireFormatError(f"invalid base64: {e}") from None
