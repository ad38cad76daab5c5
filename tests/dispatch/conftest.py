from datetime import datetime

import pytest
from protean.integrations.pytest import DomainFixture

from dispatch.realtime import get_hub
from dispatch.realtime.fake_connection import FakeConnection


@pytest.fixture(scope="session")
def dispatch_bed():
    from dispatch.domain import dispatch

    bed = DomainFixture(dispatch)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(dispatch_bed):
    with dispatch_bed.domain_context():
        yield


@pytest.fixture()
def t0():
    """A fixed instant so claim expiries can be reasoned about exactly."""
    return datetime(2026, 1, 1, 12, 0, 0)


@pytest.fixture()
def pilot_socket():
    """A fake pilot connection joined to the pilot broadcast group as pilot-a."""
    connection = FakeConnection()
    get_hub().join_pilot(connection, "pilot-a")
    return connection


@pytest.fixture()
def admin_socket():
    connection = FakeConnection()
    get_hub().join_admin(connection)
    return connection
