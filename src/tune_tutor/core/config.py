# src/tune_tutor/core/config.py

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Paths
APP_DATA_DIR = Path(os.getenv("TUNE_TUTOR_HOME", str(Path.home() / ".tune_tutor"))).expanduser()
DB_PATH = APP_DATA_DIR / "tunerTutor.sqlite"
LOG_FILE_PATH = APP_DATA_DIR / "logs" / "app_debug.log"


def ensure_directories():
    """Creates the private data + log folders before the app starts."""
    APP_DATA_DIR.mkdir(parents=True, exist_ok=True)
    LOG_FILE_PATH.parent.mkdir(parents=True, exist_ok=True)


# Database Connection
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}")

# External endpoints
TAB_CATALOG_URL = os.getenv("TAB_CATALOG_URL", "https://www.songsterr.com/a/ra/songs.json")
GUITAR_TAB_SEARCH_URL = os.getenv(
    "GUITAR_TAB_SEARCH_URL",
    "https://www.ultimate-guitar.com/search.php?search_type=title&value={query}",
)

# Seconds. Matches the 60s default of the mobile HTTP stack.
TAB_LOOKUP_TIMEOUT = float(os.getenv("TAB_LOOKUP_TIMEOUT", "60"))

DEFAULT_PROFILE_NAME = os.getenv("DEFAULT_PROFILE_NAME", "Default Profile")
