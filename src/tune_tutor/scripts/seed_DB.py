from datetime import timedelta
from loguru import logger
from tune_tutor.core.config import ensure_directories, DATABASE_URL, LOG_FILE_PATH
from tune_tutor.core.database import RecognitionHistory, utc_now
from tune_tutor.services.storage.local_store import LocalStore
from tune_tutor.services.profiles.app_state import AppState
from tune_tutor.services.catalog.suggestions import list_suggestions

DEMO_PROFILE_NAME = "Demo Profile"


def seed_database(database_url: str = DATABASE_URL):
    """Creates a demo profile whose history holds every song of the demo catalog."""
    print("📂 Initializing directories and database...")
    ensure_directories()
    sink_id = logger.add(str(LOG_FILE_PATH), rotation="10 MB", retention="10 days", level="INFO")
    try:
        return _seed(database_url)
    finally:
        logger.remove(sink_id)


def _seed(database_url: str):
    store = LocalStore.open(database_url)
    state = AppState(store)

    existing = [p for p in store.list_profiles() if p.name == DEMO_PROFILE_NAME]
    if existing:
        logger.warning(f"⚠️ '{DEMO_PROFILE_NAME}' already exists ({existing[0].id}). Skipping.")
        store.close()
        return existing[0]

    profile = state.create_profile(DEMO_PROFILE_NAME)
    now = utc_now()
    seeded = 0

    try:
        # Oldest first, so the first catalog entry ends up as the most recent recognition
        for index, song in enumerate(reversed(list_suggestions())):
            store.append_history(RecognitionHistory(
                profile_id=profile.id,
                song_title=song.title,
                artist=song.artist,
                recognized_at=now - timedelta(hours=len(list_suggestions()) - index),
            ))
            seeded += 1
    finally:
        store.close()
        logger.info("==========================================")
        logger.info(f"🏁 Seeding Complete. Profile: {profile.id} | History rows: {seeded}")
        logger.info("==========================================")

    return profile


if __name__ == "__main__":
    seed_database()
