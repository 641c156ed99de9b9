# app/infra/init_db.py

from app.infra.mongo import get_messages_collection
from app.services.message_store import MessageStore


def init_db(store: MessageStore | None = None):
    """Create the lookup and retention indexes (creates the collection too)"""
    store = store or MessageStore(get_messages_collection())

    print("📦 Creating indexes...")
    store.ensure_lookup_index()
    state = store.ensure_retention_policy()
    print(f"✓ Retention index was: {state.value}")
    return state


if __name__ == "__main__":
    init_db()
