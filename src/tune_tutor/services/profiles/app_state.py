import threading

from loguru import logger

from tune_tutor.core.config import DEFAULT_PROFILE_NAME
from tune_tutor.core.database import UserProfile, new_profile_id, utc_now
from tune_tutor.core.errors import ProfileNotFound


class AppState:
    """
    Session state: which local profile is active. The store itself knows nothing about it.

    The API serves sync handlers from a threadpool, so every read-modify-write of the
    active profile happens under one lock.
    """

    def __init__(self, store):
        self.store = store
        self._lock = threading.RLock()
        self._active_profile = None

    @property
    def active_profile(self):
        with self._lock:
            return self._active_profile

    @active_profile.setter
    def active_profile(self, profile):
        with self._lock:
            self._active_profile = profile

    @property
    def active_profile_id(self):
        with self._lock:
            return self._active_profile.id if self._active_profile else None

    def bootstrap(self, default_name: str = DEFAULT_PROFILE_NAME) -> UserProfile:
        """Selects the oldest profile, creating one on first use."""
        with self._lock:
            profiles = self.store.list_profiles()
            if profiles:
                self._active_profile = profiles[0]
                logger.info(f"👤 Active profile: {self._active_profile.name}")
                return self._active_profile

            logger.info("👤 No local profile yet, creating one")
            return self.create_profile(default_name)

    def create_profile(self, name: str, activate: bool = True) -> UserProfile:
        with self._lock:
            profile = self.store.create_or_update_profile(
                UserProfile(id=new_profile_id(), name=name, creation_date=utc_now())
            )
            if activate:
                self._active_profile = profile
            return profile

    def select_profile(self, profile_id: str) -> UserProfile:
        with self._lock:
            profile = self.store.get_profile(profile_id)
            if profile is None:
                raise ProfileNotFound(f"No profile with id {profile_id}")
            self._active_profile = profile
            return profile

    def delete_profile(self, profile_id: str):
        with self._lock:
            self.store.delete_profile(profile_id)
            if self.active_profile_id == profile_id:
                self._active_profile = None
