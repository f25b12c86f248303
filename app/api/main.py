from datetime import datetime
from typing import Optional
from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from loguru import logger

# --- Project Imports ---
from tune_tutor.core.config import ensure_directories, LOG_FILE_PATH, DATABASE_URL
from tune_tutor.core.database import SavedTab
from tune_tutor.core.errors import (
    ProfileNotFound, StoreIOError, InvalidRequest, NetworkError, DecodeError,
)
from tune_tutor.core.models import Preferences, TabType
from tune_tutor.services.storage.local_store import LocalStore
from tune_tutor.services.profiles.app_state import AppState
from tune_tutor.services.tabs.lookup import TabLookupClient, TabResult
from tune_tutor.services.catalog.suggestions import Suggestion, list_suggestions, search_songs


# --- LIFESPAN ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # 🌟 ensure_directories FIRST so the logs folder exists!
    ensure_directories()
    logger.add(str(LOG_FILE_PATH), rotation="10 MB", retention="10 days", level="INFO")

    logger.info("🚀 Booting up TuneTutor API...")
    try:
        store = LocalStore.open(DATABASE_URL)
    except StoreIOError:
        # Without the local store there is nothing to serve
        logger.critical("🔥 Local store unavailable. Aborting startup.")
        raise

    app.state.store = store
    app.state.app_state = AppState(store)
    app.state.app_state.bootstrap()
    app.state.lookup_client = TabLookupClient()
    yield
    store.close()
    logger.info("🛑 Shutting down server.")


app = FastAPI(title="TuneTutor API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- DEPENDENCIES ---
def get_store(request: Request) -> LocalStore:
    return request.app.state.store


def get_app_state(request: Request) -> AppState:
    return request.app.state.app_state


def get_lookup_client(request: Request) -> TabLookupClient:
    return request.app.state.lookup_client


# --- ERROR MAPPING ---
@app.exception_handler(ProfileNotFound)
async def profile_not_found_handler(request: Request, exc: ProfileNotFound):
    return JSONResponse(status_code=404, content={"status": "FAILED", "message": exc.user_message})


@app.exception_handler(StoreIOError)
async def store_error_handler(request: Request, exc: StoreIOError):
    logger.error(f"❌ Store error on {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=503, content={"status": "FAILED", "message": exc.user_message})


@app.exception_handler(InvalidRequest)
async def invalid_lookup_handler(request: Request, exc: InvalidRequest):
    return JSONResponse(status_code=400, content={"status": "FAILED", "message": exc.user_message})


@app.exception_handler(NetworkError)
@app.exception_handler(DecodeError)
async def upstream_lookup_handler(request: Request, exc):
    return JSONResponse(status_code=502, content={"status": "FAILED", "message": exc.user_message})


# --- SCHEMAS ---
class ProfileRequest(BaseModel):
    name: str


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    creation_date: datetime


class HistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    profile_id: str
    song_title: str
    artist: Optional[str] = None
    artwork_url: Optional[str] = None
    recognized_at: datetime
    provider_track_id: Optional[str] = None


class SaveTabRequest(BaseModel):
    song_title: str
    artist: Optional[str] = None
    tab_url: str
    tab_type: TabType
    notes: Optional[str] = None


class SavedTabOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    profile_id: str
    song_title: str
    artist: Optional[str] = None
    tab_url: str
    tab_type: TabType
    saved_at: datetime
    notes: Optional[str] = None


def _require_profile(store: LocalStore, profile_id: str):
    profile = store.get_profile(profile_id)
    if profile is None:
        raise ProfileNotFound(f"No profile with id {profile_id}")
    return profile


# --- PROFILES ---
@app.get("/api/profiles", response_model=list[ProfileOut])
def list_profiles(store: LocalStore = Depends(get_store)):
    return store.list_profiles()


@app.post("/api/profiles", response_model=ProfileOut)
def create_profile(request: ProfileRequest, state: AppState = Depends(get_app_state)):
    return state.create_profile(request.name)


@app.get("/api/profiles/active", response_model=Optional[ProfileOut])
def active_profile(state: AppState = Depends(get_app_state)):
    return state.active_profile


@app.get("/api/profiles/{profile_id}", response_model=ProfileOut)
def get_profile(profile_id: str, store: LocalStore = Depends(get_store)):
    return _require_profile(store, profile_id)


@app.post("/api/profiles/{profile_id}/activate", response_model=ProfileOut)
def activate_profile(profile_id: str, state: AppState = Depends(get_app_state)):
    return state.select_profile(profile_id)


@app.delete("/api/profiles/{profile_id}")
def delete_profile(profile_id: str, state: AppState = Depends(get_app_state)):
    state.delete_profile(profile_id)
    return {"status": "Deleted", "profile_id": profile_id}


# --- PREFERENCES ---
@app.get("/api/profiles/{profile_id}/preferences")
def get_preferences(profile_id: str, store: LocalStore = Depends(get_store)):
    return store.get_preferences(profile_id).model_dump(mode="json", by_alias=True)


@app.put("/api/profiles/{profile_id}/preferences")
def put_preferences(profile_id: str, preferences: Preferences, store: LocalStore = Depends(get_store)):
    store.set_preferences(profile_id, preferences)
    return preferences.model_dump(mode="json", by_alias=True)


# --- HISTORY ---
@app.get("/api/profiles/{profile_id}/history", response_model=list[HistoryOut])
def list_history(profile_id: str, store: LocalStore = Depends(get_store)):
    _require_profile(store, profile_id)
    return store.list_history(profile_id)


@app.delete("/api/profiles/{profile_id}/history")
def clear_history(profile_id: str, store: LocalStore = Depends(get_store)):
    _require_profile(store, profile_id)
    store.clear_history(profile_id)
    return {"status": "Cleared"}


@app.delete("/api/history/{history_id}")
def delete_history(history_id: int, store: LocalStore = Depends(get_store)):
    store.delete_history(history_id)
    return {"status": "Deleted", "history_id": history_id}


# --- SAVED TABS ---
@app.get("/api/profiles/{profile_id}/tabs", response_model=list[SavedTabOut])
def list_tabs(profile_id: str, store: LocalStore = Depends(get_store)):
    _require_profile(store, profile_id)
    return store.list_tabs(profile_id)


@app.post("/api/profiles/{profile_id}/tabs")
def save_tab(profile_id: str, request: SaveTabRequest, store: LocalStore = Depends(get_store)):
    _require_profile(store, profile_id)
    record = SavedTab(
        profile_id=profile_id,
        song_title=request.song_title,
        artist=request.artist,
        tab_url=request.tab_url,
        tab_type=request.tab_type.value,
        notes=request.notes,
    )
    saved, created = store.save_tab_once(record)
    return {
        "status": "Saved" if created else "AlreadySaved",
        "data": SavedTabOut.model_validate(saved).model_dump(mode="json"),
    }


@app.delete("/api/profiles/{profile_id}/tabs")
def clear_tabs(profile_id: str, store: LocalStore = Depends(get_store)):
    _require_profile(store, profile_id)
    store.clear_tabs(profile_id)
    return {"status": "Cleared"}


@app.delete("/api/tabs/{tab_id}")
def delete_tab(tab_id: int, store: LocalStore = Depends(get_store)):
    store.delete_tab(tab_id)
    return {"status": "Deleted", "tab_id": tab_id}


# --- CATALOG ---
@app.get("/api/tabs/lookup", response_model=list[TabResult])
def lookup_tabs(song: str, artist: str, client: TabLookupClient = Depends(get_lookup_client)):
    return client.lookup_tabs(song, artist)


@app.get("/api/suggestions", response_model=list[Suggestion])
def suggestions(shuffle: bool = False):
    return list_suggestions(shuffle=shuffle)


@app.get("/api/suggestions/search")
def suggestions_search(q: str):
    return {"results": search_songs(q)}
