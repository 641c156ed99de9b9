from dataclasses import dataclass
from datetime import datetime

import structlog

from app.core.crypto import decrypt_field, encrypt_field, hash_recipient_code
from app.core.exceptions import AnonDropError, CipherError, ValidationError
from app.services.message_store import MessageStore

logger = structlog.get_logger()

DEFAULT_SENDER_NAME = "Anonymous"


@dataclass(frozen=True)
class ReceivedMessage:
    sender_name: str
    message_text: str
    created_at: datetime


class MessageService:
    """Seals, stores and opens anonymous drop messages."""

    def __init__(self, store: MessageStore, timeout: float | None = None):
        self.store = store
        self.timeout = timeout

    def send(self, recipient_code: str | None, sender_name: str | None, body: str | None) -> datetime:
        """Store a sealed message for `recipient_code`. Returns its creation time."""
        if not recipient_code or not body:
            raise ValidationError("Missing fields")

        sender_name = (sender_name or "").strip() or DEFAULT_SENDER_NAME

        record = self.store.insert(
            hash_recipient_code(recipient_code),
            encrypt_field(sender_name),
            encrypt_field(body),
            timeout=self.timeout,
        )

        # The record is already stored; maintenance trouble must not fail the send
        try:
            self.store.ensure_retention_policy(timeout=self.timeout)
        except AnonDropError as e:
            logger.warning("retention_maintenance_failed", error_type=type(e).__name__)
        except Exception as e:
            logger.error("retention_maintenance_failed", error_type=type(e).__name__)

        return record.created_at

    def fetch(self, recipient_code: str | None) -> list[ReceivedMessage]:
        """Open every live message for `recipient_code`, newest first."""
        if not recipient_code:
            raise ValidationError("Anon code required")

        records = self.store.query_by_recipient(
            hash_recipient_code(recipient_code), timeout=self.timeout
        )

        messages = []
        for record in records:
            try:
                messages.append(
                    ReceivedMessage(
                        sender_name=decrypt_field(record.encrypted_sender_name),
                        message_text=decrypt_field(record.encrypted_body),
                        created_at=record.created_at,
                    )
                )
            except CipherError:
                logger.error("message_unreadable", record_id=str(record.id))
                raise
        return messages
