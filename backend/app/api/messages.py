# app/api/messages.py

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel

from app.api.deps import get_message_service
from app.core.circuit_breaker import FETCH_LIMIT, SEND_LIMIT, limiter
from app.core.message import MessageService

router = APIRouter(prefix="/messages")


def to_js_timestamp(value: datetime) -> str:
    """Render like JSON.stringify(new Date()): 2024-01-01T00:00:01.000Z"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"


class SendMessageSchema(BaseModel):
    # Optional so a missing field gets the service's 400, not a 422
    recipientAnonCode: str | None = None
    senderName: str | None = None
    messageContent: str | None = None


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(SEND_LIMIT)
def send_message(
    request: Request,
    payload: SendMessageSchema,
    service: MessageService = Depends(get_message_service),
):
    service.send(payload.recipientAnonCode, payload.senderName, payload.messageContent)
    return {"message": "Message sent"}


@router.get("")
@limiter.limit(FETCH_LIMIT)
def fetch_messages(
    request: Request,
    anon_code: str | None = Query(None, alias="anonCode"),
    service: MessageService = Depends(get_message_service),
):
    messages = service.fetch(anon_code)
    return {
        "messages": [
            {
                "senderName": m.sender_name,
                "messageText": m.message_text,
                "createdAt": to_js_timestamp(m.created_at),
            }
            for m in messages
        ]
    }
