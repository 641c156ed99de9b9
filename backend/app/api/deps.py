# app/api/deps.py

from app.core.config import settings
from app.core.message import MessageService
from app.infra.mongo import get_messages_collection
from app.services.message_store import MessageStore


def get_message_store() -> MessageStore:
    return MessageStore(get_messages_collection())


def get_message_service() -> MessageService:
    """
    FastAPI dependency providing the message service.
    Usage:
        def my_route(service: MessageService = Depends(get_message_service)):
            ...
    """
    return MessageService(get_message_store(), timeout=settings.STORE_TIMEOUT_SECONDS)
