"""Order store factory.

Provides get_order_store() / set_order_store() to swap implementations:
- SqlOrderStore for SQLite (development) and PostgreSQL (production)
- MemoryOrderStore for quick local runs and tests
"""

from dispatch.config import get_settings
from dispatch.store.port import OrderStore

_current_store: OrderStore | None = None


def get_order_store() -> OrderStore:
    """Return the configured order store. Defaults to the SQL store."""
    global _current_store
    if _current_store is None:
        settings = get_settings()
        if settings.order_store == "memory":
            from dispatch.store.memory_adapter import MemoryOrderStore

            _current_store = MemoryOrderStore()
        else:
            from dispatch.store.sql_adapter import SqlOrderStore

            _current_store = SqlOrderStore.from_uri(settings.database_uri)
    return _current_store


def set_order_store(store: OrderStore) -> None:
    """Override the active order store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_order_store() -> None:
    """Reset to the configured store."""
    global _current_store
    _current_store = None
