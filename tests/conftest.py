from __future__ import annotations

from dataclasses import replace

import pytest

from fake_api import STUDENT_ID, TEST_TOKEN, FakeHostelApi
from hostel_portal.domain.models import SessionIdentity
from hostel_portal.repository.api_repository import HostelApiRepository
from hostel_portal.repository.state_store import LocalStateStore
from hostel_portal.services.auth_service import AuthService
from hostel_portal.utils.config import get_settings


def build_test_settings(tmp_path, **overrides):
    get_settings.cache_clear()
    base = get_settings()
    values = {
        "api_base_url": "http://testserver",
        "state_database_path": tmp_path / "portal_state.db",
        "allocation_poll_interval_seconds": 0.01,
    }
    values.update(overrides)
    return replace(base, **values)


@pytest.fixture
def settings(tmp_path):
    return build_test_settings(tmp_path)


@pytest.fixture
def fake_api():
    return FakeHostelApi()


@pytest.fixture
def state_store(settings):
    store = LocalStateStore(settings)
    store.initialize_database()
    return store


@pytest.fixture
def repository(settings, fake_api):
    repo = HostelApiRepository(settings=settings, token_provider=lambda: TEST_TOKEN, client=fake_api.client())
    yield repo
    repo.close()


@pytest.fixture
def auth(repository, state_store):
    state_store.save_session(SessionIdentity(role="student", user_id=STUDENT_ID, token=TEST_TOKEN))
    return AuthService(repository=repository, state_store=state_store)
