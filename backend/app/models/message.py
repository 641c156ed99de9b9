# app/models/message.py

from dataclasses import dataclass
from datetime import datetime

# Document keys as stored in the messages collection
RECIPIENT_HASH_FIELD = "recipientUsernameHash"
SENDER_FIELD = "encryptedSenderName"
BODY_FIELD = "encryptedMessageContent"
CREATED_AT_FIELD = "createdAt"


@dataclass(frozen=True)
class MessageRecord:
    recipient_hash: str
    encrypted_sender_name: str
    encrypted_body: str
    created_at: datetime
    id: object = None

    def to_document(self) -> dict:
        return {
            RECIPIENT_HASH_FIELD: self.recipient_hash,
            SENDER_FIELD: self.encrypted_sender_name,
            BODY_FIELD: self.encrypted_body,
            CREATED_AT_FIELD: self.created_at,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "MessageRecord":
        # .get so a damaged document surfaces as a cipher failure on read
        return cls(
            recipient_hash=doc.get(RECIPIENT_HASH_FIELD),
            encrypted_sender_name=doc.get(SENDER_FIELD),
            encrypted_body=doc.get(BODY_FIELD),
            created_at=doc.get(CREATED_AT_FIELD),
            id=doc.get("_id"),
        )
