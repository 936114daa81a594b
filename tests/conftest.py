import os
import sys

# Ensure root import
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest

from config import AppConfig

AppConfig.test_mode()

from auth_service.controller import AuthSessionController
from auth_service.credential_store import CredentialStore
from auth_service.database import init_db, make_session_factory
from auth_service.settings_store import SettingsStore


class FakeGateway:
    """Records outgoing SMS instead of sending them."""

    def __init__(self, deliver=True, explode=False):
        self.deliver = deliver
        self.explode = explode
        self.sent = []

    def send(self, destination, body):
        if self.explode:
            raise RuntimeError("gateway down")
        self.sent.append((destination, body))
        return self.deliver

    @property
    def last_code(self):
        return self.sent[-1][1].rsplit(" ", 1)[-1]


@pytest.fixture
def session_factory():
    factory = make_session_factory("sqlite://")
    init_db(factory)
    return factory


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store(session_factory):
    return CredentialStore(session_factory)


@pytest.fixture
def settings(session_factory):
    return SettingsStore(session_factory)


@pytest.fixture
def controller(store, gateway):
    ctrl = AuthSessionController(store, gateway, code_max_attempts=1, code_ttl_seconds=0)
    yield ctrl
    ctrl.shutdown(wait=True)


@pytest.fixture
def alice(store):
    store.create_account("alice@example.com", "Abcdef1!", "+15550001111")
    return "alice@example.com"
