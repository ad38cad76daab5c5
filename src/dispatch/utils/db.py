from dispatch.store import get_order_store
from dispatch.store.sql_adapter import SqlOrderStore


def setup_db(store=None):
    """Setup database schema"""
    store = store or get_order_store()
    # Only relational stores carry a schema
    if isinstance(store, SqlOrderStore):
        store.create_schema()


def drop_db(store=None):
    """Drop database schema"""
    store = store or get_order_store()
    if isinstance(store, SqlOrderStore):
        store.drop_schema()
