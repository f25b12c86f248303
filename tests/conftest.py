import pytest
from tune_tutor.services.storage.local_store import LocalStore
from tune_tutor.services.profiles.app_state import AppState


@pytest.fixture
def store(tmp_path):
    local_store = LocalStore.open(f"sqlite:///{tmp_path / 'tunerTutor.sqlite'}")
    yield local_store
    local_store.close()


@pytest.fixture
def app_state(store):
    state = AppState(store)
    state.create_profile("Tester")
    return state


@pytest.fixture
def profile(app_state):
    return app_state.active_profile
