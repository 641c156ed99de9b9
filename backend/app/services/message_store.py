# app/services/message_store.py

from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from enum import Enum

import pymongo
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, ExecutionTimeout, OperationFailure, WTimeoutError
import structlog

from app.core.exceptions import StoreUnavailableError
from app.models.message import CREATED_AT_FIELD, RECIPIENT_HASH_FIELD, MessageRecord

logger = structlog.get_logger()

RETENTION_SECONDS = 24 * 60 * 60
TTL_INDEX_NAME = "createdAt_1"
LOOKUP_INDEX_NAME = "recipient_lookup"

# MongoDB server error codes
NAMESPACE_NOT_FOUND = 26
INDEX_NOT_FOUND = 27


class RetentionState(str, Enum):
    NO_CONTAINER = "no_container"
    ABSENT = "absent"
    WRONG_WINDOW = "wrong_window"
    CORRECT = "correct"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_bson_millis(value: datetime) -> datetime:
    """Truncate to the millisecond precision BSON dates keep."""
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


@contextmanager
def _store_call(timeout: float | None):
    """Bound the enclosed driver calls by `timeout` and wrap transient failures."""
    try:
        with pymongo.timeout(timeout):
            yield
    except (ConnectionFailure, ExecutionTimeout, WTimeoutError) as exc:
        raise StoreUnavailableError("Message store unavailable") from exc


class MessageStore:
    """
    Owns the messages collection: inserts, recipient queries, and the
    TTL index that expires records after RETENTION_SECONDS.
    """

    def __init__(self, collection, clock=_utcnow):
        self._collection = collection
        self._clock = clock

    def insert(
        self,
        recipient_hash: str,
        encrypted_sender_name: str,
        encrypted_body: str,
        timeout: float | None = None,
    ) -> MessageRecord:
        record = MessageRecord(
            recipient_hash=recipient_hash,
            encrypted_sender_name=encrypted_sender_name,
            encrypted_body=encrypted_body,
            created_at=_to_bson_millis(self._clock()),
        )
        with _store_call(timeout):
            result = self._collection.insert_one(record.to_document())

        logger.info("message_stored", recipient=recipient_hash[:8])
        return replace(record, id=result.inserted_id)

    def query_by_recipient(self, recipient_hash: str, timeout: float | None = None) -> list[MessageRecord]:
        """Live records for a recipient, newest first."""
        cutoff = self._clock() - timedelta(seconds=RETENTION_SECONDS)
        with _store_call(timeout):
            cursor = self._collection.find(
                {RECIPIENT_HASH_FIELD: recipient_hash, CREATED_AT_FIELD: {"$gt": cutoff}}
            ).sort([(CREATED_AT_FIELD, DESCENDING), ("_id", DESCENDING)])
            return [MessageRecord.from_document(doc) for doc in cursor]

    # =========================
    # INDEX MAINTENANCE
    # =========================

    def _collection_exists(self) -> bool:
        names = self._collection.database.list_collection_names(
            filter={"name": self._collection.name}
        )
        return self._collection.name in names

    def inspect_retention(self, timeout: float | None = None) -> RetentionState:
        """Report the TTL index state without changing anything."""
        with _store_call(timeout):
            if not self._collection_exists():
                return RetentionState.NO_CONTAINER
            indexes = self._collection.index_information()

        ttl_index = indexes.get(TTL_INDEX_NAME)
        if ttl_index is None:
            return RetentionState.ABSENT
        if (
            list(ttl_index.get("key", [])) != [(CREATED_AT_FIELD, ASCENDING)]
            or ttl_index.get("expireAfterSeconds") != RETENTION_SECONDS
        ):
            return RetentionState.WRONG_WINDOW
        return RetentionState.CORRECT

    def ensure_retention_policy(self, timeout: float | None = None) -> RetentionState:
        """
        Make sure the TTL index exists with the right window.

        Safe to call repeatedly and from concurrent requests. A collection
        that does not exist yet is left alone; the first insert creates it
        and the next call installs the index. Returns the state found.
        """
        try:
            state = self.inspect_retention(timeout)
            if state is RetentionState.WRONG_WINDOW:
                with _store_call(timeout):
                    self._drop_ttl_index()
            if state in (RetentionState.ABSENT, RetentionState.WRONG_WINDOW):
                with _store_call(timeout):
                    self._collection.create_index(
                        [(CREATED_AT_FIELD, ASCENDING)],
                        name=TTL_INDEX_NAME,
                        expireAfterSeconds=RETENTION_SECONDS,
                    )
                logger.info("retention_index_installed", previous_state=state.value)
            return state
        except OperationFailure as exc:
            if exc.code == NAMESPACE_NOT_FOUND:
                # Collection vanished between checks; the next call retries
                return RetentionState.NO_CONTAINER
            raise

    def _drop_ttl_index(self):
        try:
            self._collection.drop_index(TTL_INDEX_NAME)
        except OperationFailure as exc:
            # Another request already dropped it
            if exc.code != INDEX_NOT_FOUND:
                raise

    def ensure_lookup_index(self, timeout: float | None = None):
        with _store_call(timeout):
            self._collection.create_index(
                [(RECIPIENT_HASH_FIELD, ASCENDING), (CREATED_AT_FIELD, DESCENDING)],
                name=LOOKUP_INDEX_NAME,
            )
