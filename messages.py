import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from auth import require_admin
from database import create_document, delete_document, get_document, get_documents, serialize, update_document
from schemas import ContactMessage, MessageStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contact", tags=["contact"])


class MessageUpdate(BaseModel):
    status: MessageStatus


@router.post("", status_code=201)
def send_message(payload: ContactMessage):
    message = payload.model_copy(update={"status": "unread"})
    mid = create_document("contactmessage", message)
    logger.info("Contact message %s received from %s", mid, payload.email)
    return serialize(get_document("contactmessage", mid))


@router.get("")
def list_messages(status: Optional[MessageStatus] = None, admin: dict = Depends(require_admin)):
    query = {"status": status} if status else {}
    return [serialize(d) for d in get_documents("contactmessage", query, sort=[("created_at", -1)])]


@router.get("/{message_id}")
def get_message(message_id: str, admin: dict = Depends(require_admin)):
    message = get_document("contactmessage", message_id)
    if not message:
        raise HTTPException(status_code=404, detail=f"Message not found with id of {message_id}")
    return serialize(message)


@router.put("/{message_id}")
def update_message(message_id: str, payload: MessageUpdate, admin: dict = Depends(require_admin)):
    updated = update_document("contactmessage", message_id, {"status": payload.status})
    if not updated:
        raise HTTPException(status_code=404, detail=f"Message not found with id of {message_id}")
    return serialize(updated)


@router.delete("/{message_id}")
def delete_message(message_id: str, admin: dict = Depends(require_admin)):
    if not delete_document("contactmessage", message_id):
        raise HTTPException(status_code=404, detail=f"Message not found with id of {message_id}")
    logger.info("Contact message %s deleted by %s", message_id, admin["id"])
    return {"deleted": True, "id": message_id}
