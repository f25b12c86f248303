import uuid
from datetime import datetime, timezone
from sqlalchemy import create_engine, event, Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import declarative_base, sessionmaker, relationship


Base = declarative_base()


def utc_now() -> datetime:
    # SQLite drops tzinfo, so everything is stored as naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_profile_id() -> str:
    return str(uuid.uuid4())


class UserProfile(Base):
    __tablename__ = "userProfile"

    id = Column(String, primary_key=True, default=new_profile_id)
    name = Column(String, nullable=False)
    creation_date = Column("creationDate", DateTime, nullable=False, default=utc_now)
    preferences_json = Column("preferencesJson", Text, nullable=True)

    # Deleting a profile takes its history and bookmarks with it
    history = relationship("RecognitionHistory", back_populates="profile", cascade="all, delete-orphan", passive_deletes=True)
    saved_tabs = relationship("SavedTab", back_populates="profile", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<UserProfile(id={self.id}, name={self.name})>"


class RecognitionHistory(Base):
    __tablename__ = "recognitionHistory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column("profileId", String, ForeignKey("userProfile.id", ondelete="CASCADE"), nullable=False, index=True)
    song_title = Column("songTitle", String, nullable=False)
    artist = Column(String, nullable=True)
    artwork_url = Column("artworkURL", String, nullable=True)
    recognized_at = Column("recognizedAt", DateTime, nullable=False, default=utc_now)
    provider_track_id = Column("providerTrackId", String, nullable=True)
    notes = Column(Text, nullable=True)

    profile = relationship("UserProfile", back_populates="history")

    def __repr__(self):
        return f"<RecognitionHistory(title={self.song_title}, artist={self.artist})>"


class SavedTab(Base):
    __tablename__ = "savedTab"

    id = Column(Integer, primary_key=True, autoincrement=True)
    profile_id = Column("profileId", String, ForeignKey("userProfile.id", ondelete="CASCADE"), nullable=False, index=True)
    song_title = Column("songTitle", String, nullable=False)
    artist = Column(String, nullable=True)
    # (profileId, tabURL) is unique by convention only: callers check find_tab() before inserting
    tab_url = Column("tabURL", String, nullable=False)
    tab_type = Column("tabType", String, nullable=False)
    saved_at = Column("savedAt", DateTime, nullable=False, default=utc_now)
    notes = Column(Text, nullable=True)

    profile = relationship("UserProfile", back_populates="saved_tabs")

    def __repr__(self):
        return f"<SavedTab(title={self.song_title}, type={self.tab_type})>"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_store_engine(database_url: str):
    engine = create_engine(database_url, connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {})
    if engine.dialect.name == "sqlite":
        # SQLite ignores REFERENCES / ON DELETE CASCADE unless this is set per connection
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


# Initialize tables (CREATE TABLE IF NOT EXISTS)
def init_db(engine):
    Base.metadata.create_all(bind=engine)
