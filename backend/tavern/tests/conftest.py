import random

import pytest

from tavern.messaging.router import MessageRouter
from tavern.session.manager import SessionManager
from tavern.tests.helpers.session import TEST_GRACE_SECONDS
from tavern.tests.mocks import MockConnection


@pytest.fixture
def manager():
    return SessionManager(grace_seconds=TEST_GRACE_SECONDS, rng=random.Random(1234))


@pytest.fixture
def message_router(manager):
    return MessageRouter(manager)


@pytest.fixture
def mock_connection():
    return MockConnection()

