import threading
from contextlib import contextmanager
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from loguru import logger

from tune_tutor.core.config import DATABASE_URL
from tune_tutor.core.database import (
    UserProfile, RecognitionHistory, SavedTab,
    create_store_engine, make_session_factory, init_db,
)
from tune_tutor.core.errors import ProfileNotFound, StoreIOError
from tune_tutor.core.models import Preferences

"""
LocalStore is the one owner of the local SQLite file.

It is opened once at process start (LocalStore.open) and handed to every consumer.
Every call runs inside its own session behind a single re-entrant lock, so callers on
different threads never interleave reads and writes. Writes are committed before the
call returns. Any SQLAlchemy failure is rolled back and surfaces as StoreIOError.

Returned rows are detached from their session (expire_on_commit=False), so their
columns stay readable after the call; relationships are not.
"""


class LocalStore:
    def __init__(self, engine):
        self.engine = engine
        self.SessionLocal = make_session_factory(engine)
        self._lock = threading.RLock()

    @classmethod
    def open(cls, database_url: str = DATABASE_URL) -> "LocalStore":
        try:
            engine = create_store_engine(database_url)
            init_db(engine)
        except SQLAlchemyError as e:
            logger.critical(f"🔥 Failed to initialize database at {database_url}: {e}")
            raise StoreIOError(f"Failed to open local store: {e}", cause=e) from e

        logger.info(f"🗄️ Local store ready at {database_url}")
        return cls(engine)

    def close(self):
        self.engine.dispose()

    @contextmanager
    def session(self):
        with self._lock:
            db = self.SessionLocal()
            try:
                yield db
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"❌ Store transaction failed: {e}")
                raise StoreIOError(str(e), cause=e) from e
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    # --- Profiles ---
    def create_or_update_profile(self, profile: UserProfile) -> UserProfile:
        with self.session() as db:
            saved = db.merge(profile)
            db.flush()
        logger.info(f"👤 Saved profile: {saved.name}")
        return saved

    def get_profile(self, profile_id: str) -> UserProfile | None:
        with self.session() as db:
            return db.get(UserProfile, profile_id)

    def list_profiles(self) -> list[UserProfile]:
        with self.session() as db:
            return db.query(UserProfile).order_by(UserProfile.creation_date.asc()).all()

    def delete_profile(self, profile_id: str):
        with self.session() as db:
            profile = db.get(UserProfile, profile_id)
            if profile is None:
                raise ProfileNotFound(f"No profile with id {profile_id}")
            db.delete(profile)
        logger.info(f"🗑️ Deleted profile {profile_id} with its history and saved tabs")

    # --- Recognition history ---
    def append_history(self, record: RecognitionHistory) -> RecognitionHistory:
        with self.session() as db:
            db.add(record)
            db.flush()  # assigns record.id
        logger.info(f"🎵 Saved recognition history for song: {record.song_title}, ID: {record.id}")
        return record

    def list_history(self, profile_id: str) -> list[RecognitionHistory]:
        with self.session() as db:
            return (
                db.query(RecognitionHistory)
                .filter(RecognitionHistory.profile_id == profile_id)
                .order_by(RecognitionHistory.recognized_at.desc(), RecognitionHistory.id.desc())
                .all()
            )

    def delete_history(self, history_id: int):
        with self.session() as db:
            db.query(RecognitionHistory).filter(RecognitionHistory.id == history_id).delete(synchronize_session=False)
        logger.info(f"🗑️ Deleted recognition history with ID: {history_id}")

    def clear_history(self, profile_id: str):
        with self.session() as db:
            removed = (
                db.query(RecognitionHistory)
                .filter(RecognitionHistory.profile_id == profile_id)
                .delete(synchronize_session=False)
            )
        logger.info(f"🧹 Cleared {removed} history rows for profile ID: {profile_id}")

    # --- Saved tabs ---
    def save_tab(self, record: SavedTab) -> SavedTab:
        with self.session() as db:
            if record.id is None:
                db.add(record)
                saved = record
            else:
                saved = db.merge(record)
            db.flush()
        logger.info(f"📌 Saved tab: {saved.song_title} - {saved.tab_type}, ID: {saved.id}")
        return saved

    def save_tab_once(self, record: SavedTab) -> tuple[SavedTab, bool]:
        """
        Check-before-insert on (profile_id, tab_url). Returns (row, created).
        Holding the lock across both steps keeps two callers from inserting the same bookmark.
        """
        with self._lock:
            existing = self.find_tab(record.profile_id, record.tab_url)
            if existing is not None:
                logger.info(f"📌 Tab already saved: {existing.tab_url}")
                return existing, False
            return self.save_tab(record), True

    def find_tab(self, profile_id: str, tab_url: str) -> SavedTab | None:
        with self.session() as db:
            return (
                db.query(SavedTab)
                .filter(SavedTab.profile_id == profile_id, SavedTab.tab_url == tab_url)
                .first()
            )

    def list_tabs(self, profile_id: str) -> list[SavedTab]:
        with self.session() as db:
            return (
                db.query(SavedTab)
                .filter(SavedTab.profile_id == profile_id)
                .order_by(SavedTab.saved_at.desc(), SavedTab.id.desc())
                .all()
            )

    def delete_tab(self, tab_id: int):
        with self.session() as db:
            db.query(SavedTab).filter(SavedTab.id == tab_id).delete(synchronize_session=False)
        logger.info(f"🗑️ Deleted saved tab with ID: {tab_id}")

    def clear_tabs(self, profile_id: str):
        with self.session() as db:
            removed = db.query(SavedTab).filter(SavedTab.profile_id == profile_id).delete(synchronize_session=False)
        logger.info(f"🧹 Cleared {removed} saved tabs for profile ID: {profile_id}")

    # --- Preferences ---
    def get_preferences(self, profile_id: str) -> Preferences:
        profile = self.get_profile(profile_id)
        if profile is None:
            raise ProfileNotFound(f"No profile with id {profile_id}")

        if not profile.preferences_json:
            return Preferences()

        try:
            return Preferences.from_json(profile.preferences_json)
        except ValidationError as e:
            # Corrupted or unparsable blob: fall back to defaults instead of failing the call
            logger.warning(f"⚠️ Error decoding preferences for profile {profile_id}: {e}. Returning defaults.")
            return Preferences()

    def set_preferences(self, profile_id: str, preferences: Preferences):
        with self.session() as db:
            profile = db.get(UserProfile, profile_id)
            if profile is None:
                raise ProfileNotFound(f"No profile with id {profile_id}")
            profile.preferences_json = preferences.to_json()
        logger.info(f"⚙️ Updated preferences for profile ID: {profile_id}")
