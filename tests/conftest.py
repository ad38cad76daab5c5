import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Point the order store at an in-memory SQLite database unless the caller
    picked one. Settings are read lazily, so this must happen before any test
    touches the store.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ.setdefault("DISPATCH_DATABASE_URI", "sqlite://")
    os.environ.setdefault("DISPATCH_ORDER_STORE", "sql")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def order_store():
    """The session-wide SQL order store every test runs against."""
    from dispatch.config import get_settings
    from dispatch.store.sql_adapter import SqlOrderStore

    return SqlOrderStore.from_uri(get_settings().database_uri)


@pytest.fixture(scope="session", autouse=True)
def setup_db(order_store):
    from dispatch.store import set_order_store
    from dispatch.utils.db import drop_db, setup_db

    set_order_store(order_store)
    setup_db(order_store)

    yield

    drop_db(order_store)


@pytest.fixture(autouse=True)
def run_around_tests(order_store):
    """Fixture to automatically cleanup infrastructure after every test"""
    yield

    from dispatch.config import reset_settings
    from dispatch.realtime import reset_realtime
    from dispatch.reaper import reset_reaper
    from dispatch.store import set_order_store

    # Clear orders and put the session store back in case a test swapped it
    order_store.clear()
    set_order_store(order_store)

    reset_realtime()
    reset_reaper()
    reset_settings()
