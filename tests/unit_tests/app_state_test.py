import pytest
from concurrent.futures import ThreadPoolExecutor

from tune_tutor.core.errors import ProfileNotFound
from tune_tutor.services.profiles.app_state import AppState
from tune_tutor.services.catalog.suggestions import list_suggestions, search_songs


class TestAppState:
    def test_bootstrap_creates_profile_on_first_use(self, store):
        state = AppState(store)
        profile = state.bootstrap("First Run")

        assert profile.name == "First Run"
        assert state.active_profile_id == profile.id
        assert len(store.list_profiles()) == 1

    def test_bootstrap_reuses_oldest_profile(self, store):
        first = AppState(store).create_profile("Oldest")
        AppState(store).create_profile("Newer")

        state = AppState(store)
        assert state.bootstrap().id == first.id
        assert len(store.list_profiles()) == 2

    def test_select_profile(self, app_state):
        other = app_state.create_profile("Other", activate=False)
        assert app_state.active_profile.name == "Tester"

        app_state.select_profile(other.id)
        assert app_state.active_profile_id == other.id

    def test_select_missing_profile_raises(self, app_state):
        with pytest.raises(ProfileNotFound):
            app_state.select_profile("ghost")

    def test_deleting_active_profile_clears_selection(self, app_state, profile):
        app_state.delete_profile(profile.id)
        assert app_state.active_profile is None


class TestSuggestions:
    def test_catalog_has_demo_songs(self):
        titles = [s.title for s in list_suggestions()]
        assert titles[0] == "Blackbird"
        assert len(titles) == 5

    def test_shuffle_keeps_same_songs(self):
        assert sorted(s.title for s in list_suggestions(shuffle=True)) == sorted(s.title for s in list_suggestions())

    def test_search_matches_title_or_artist_case_insensitively(self):
        assert search_songs("clapton") == ["Tears in Heaven - Eric Clapton", "Layla - Eric Clapton"]
        assert search_songs("DUST") == ["Dust in the Wind - Kansas"]
        assert search_songs("metallica") == []


class TestAppStateConcurrency:
    def test_concurrent_creates_leave_one_consistent_active_profile(self, store):
        state = AppState(store)
        names = [f"Player {i}" for i in range(8)]

        with ThreadPoolExecutor(max_workers=4) as pool:
            created = list(pool.map(state.create_profile, names))

        assert sorted(p.name for p in store.list_profiles()) == sorted(names)
        assert state.active_profile_id in {p.id for p in created}

    def test_select_and_delete_from_threads(self, store):
        state = AppState(store)
        profiles = [state.create_profile(f"Player {i}") for i in range(4)]
        victim = profiles[-1]

        with ThreadPoolExecutor(max_workers=4) as pool:
            futures = [pool.submit(state.select_profile, p.id) for p in profiles[:-1]]
            futures.append(pool.submit(state.delete_profile, victim.id))
            for future in futures:
                future.result()

        # The deleted profile can never stay selected
        assert state.active_profile_id != victim.id
        assert victim.id not in [p.id for p in store.list_profiles()]
