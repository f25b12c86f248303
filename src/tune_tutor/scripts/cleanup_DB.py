from sqlalchemy import func
from loguru import logger
from tune_tutor.core.config import DATABASE_URL
from tune_tutor.core.database import SavedTab, RecognitionHistory
from tune_tutor.services.storage.local_store import LocalStore


def sanitize_database(store: LocalStore = None) -> dict:
    """
    The store only enforces (profileId, tabURL) uniqueness by convention, so older builds
    could leave duplicate bookmarks behind. Keeps the oldest row of each group and deletes
    the rest. Blank-title history rows are reported, not deleted.
    """
    logger.info(" Starting Database Sanity Check (Duplicate bookmarks & blank titles)...")
    owns_store = store is None
    store = store or LocalStore.open(DATABASE_URL)
    report = {"duplicate_tabs_removed": 0, "blank_history_titles": 0}

    try:
        with store.session() as db:
            groups = (
                db.query(SavedTab.profile_id, SavedTab.tab_url, func.min(SavedTab.id))
                .group_by(SavedTab.profile_id, SavedTab.tab_url)
                .having(func.count(SavedTab.id) > 1)
                .all()
            )

            for profile_id, tab_url, keep_id in groups:
                removed = (
                    db.query(SavedTab)
                    .filter(SavedTab.profile_id == profile_id, SavedTab.tab_url == tab_url, SavedTab.id != keep_id)
                    .delete(synchronize_session=False)
                )
                logger.info(f"   🗑️ Removed {removed} duplicate(s) of {tab_url} for profile {profile_id}")
                report["duplicate_tabs_removed"] += removed

            report["blank_history_titles"] = (
                db.query(RecognitionHistory).filter(func.trim(RecognitionHistory.song_title) == "").count()
            )

        if report["blank_history_titles"]:
            logger.warning(f"⚠️ {report['blank_history_titles']} history rows have a blank song title.")

        if report["duplicate_tabs_removed"]:
            logger.success(f"🧹 Cleanup complete. {report['duplicate_tabs_removed']} duplicate bookmarks removed.")
        else:
            logger.success("✅ Database is healthy. No duplicate bookmarks found.")
        return report
    finally:
        if owns_store:
            store.close()


if __name__ == "__main__":
    sanitize_database()
