"""
FastAPI Integration for Geolock

REST surface over MessageService: store sealed messages, describe and
list them, and run the server-side attestation unlock.

Usage:
    from geolock.integrations.fastapi import create_app
    from geolock.service import MessageService
    from geolock.storage import InMemoryMessageStore

    app = create_app(MessageService(InMemoryMessageStore()))

    # uvicorn module:app, or `geolock serve`

Endpoints:
    GET    /health
    POST   /api/devices
    POST   /api/messages
    GET    /api/messages
    GET    /api/messages/{id}
    GET    /api/messages/{id}/encrypted
    POST   /api/messages/{id}/unlock
    DELETE /api/messages/{id}
"""

import logging
import time

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from geolock import __version__
from geolock.devices import DeviceKeyMismatch
from geolock.service import MessageService
from geolock.storage import MessageExists, MessageNotFound
from geolock.wire import (
    DeviceRegistration,
    LocationBindingModel,
    StoreMessageRequest,
    UnlockRequest,
    encode_bytes,
    sealed_to_dict,
)

logger = logging.getLogger(__name__)


def _not_found(message_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Message {message_id} not found")


def create_app(service: MessageService) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Message service holding the store and verification settings

    Returns:
        FastAPI app
    """
    app = FastAPI(title="geolock", version=__version__)
    app.state.service = service

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "service": "geolock",
            "timestamp": int(time.time() * 1000),
            "messagesStored": len(service.store.list()),
        }

    @app.post("/api/devices")
    async def register_device(body: DeviceRegistration):
        if service.registry is None:
            raise HTTPException(status_code=404, detail="Device registration is not enabled")
        try:
            service.register_device(body.device_id, body.public_key)
        except DeviceKeyMismatch as e:
            raise HTTPException(status_code=409, detail=str(e))
        return {"success": True, "deviceId": body.device_id}

    @app.post("/api/messages")
    async def store_message(body: StoreMessageRequest):
        try:
            sealed = body.to_domain()
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        try:
            expires_at = service.store_message(body.id, sealed)
        except MessageExists as e:
            raise HTTPException(status_code=409, detail=str(e))
        return {"success": True, "messageId": body.id, "expiresAt": expires_at}

    @app.get("/api/messages")
    async def list_messages():
        messages = service.list_messages()
        return {"messages": messages, "count": len(messages)}

    @app.get("/api/messages/{message_id}")
    async def get_message(message_id: str):
        try:
            info = service.get_metadata(message_id)
        except MessageNotFound:
            raise _not_found(message_id)
        return {
            "id": message_id,
            "locationBinding": LocationBindingModel.from_domain(info["binding"]).model_dump(
                by_alias=True, mode="json"
            ),
            "metadata": info["metadata"].to_dict(),
            "senderPublicKey": encode_bytes(info["sender_public_key"]),
            "recipientPublicKey": encode_bytes(info["recipient_public_key"]),
        }

    @app.get("/api/messages/{message_id}/encrypted")
    async def get_encrypted(message_id: str):
        try:
            sealed = service.get_sealed(message_id)
        except MessageNotFound:
            raise _not_found(message_id)
        return {"id": message_id, **sealed_to_dict(sealed)}

    @app.post("/api/messages/{message_id}/unlock")
    async def unlock(message_id: str, body: UnlockRequest):
        try:
            outcome = service.unlock(message_id, body.attestation.to_domain())
        except MessageNotFound:
            raise _not_found(message_id)

        if not outcome.unlocked:
            return JSONResponse(
                status_code=403,
                content={
                    "unlocked": False,
                    "reason": outcome.reason.value,
                    "detail": outcome.detail,
                    "distance": outcome.distance,
                },
            )

        return {
            "unlocked": True,
            "wrappedKey": encode_bytes(outcome.wrapped_key),
            "wrappedKeyNonce": encode_bytes(outcome.wrap_nonce),
            "wrappedKeyAuthTag": encode_bytes(outcome.wrap_tag),
            "distance": outcome.distance,
        }

    @app.delete("/api/messages/{message_id}")
    async def delete_message(message_id: str):
        try:
            service.delete_message(message_id)
        except MessageNotFound:
            raise _not_found(message_id)
        return {"success": True}

    logger.debug("Created geolock app with %s", type(service.store).__name__)
    return app
