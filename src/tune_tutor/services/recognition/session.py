from enum import Enum
from functools import partial
from dataclasses import dataclass, replace
from typing import Callable, Optional
from loguru import logger

from tune_tutor.core.database import RecognitionHistory, SavedTab
from tune_tutor.core.errors import (
    TuneTutorError, PermissionDenied, CaptureFault, EngineFault, MissingContext,
    StoreIOError, TabLookupError,
)
from tune_tutor.core.models import RecognitionMatch, TabType
from tune_tutor.services.recognition.engine import EngineOutcome, EngineResult, PermissionStatus
from tune_tutor.services.tabs.links import build_tab_search_urls

READY_TEXT = "Tap the button to start identifying a song!"
LISTENING_TEXT = "Listening..."
FOUND_TEXT = "Song Found!"
NO_MATCH_TEXT = "Sorry, I couldn't identify that song. Try again!"
MIC_NEEDED_TEXT = "Microphone access needed to identify songs."


class RecognitionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"


class EventKind(str, Enum):
    STARTED = "started"
    MATCHED = "matched"
    NO_MATCH = "no_match"
    FAILED = "failed"
    UPDATED = "updated"  # snapshot changed without a recognition outcome (saved flags, lookup results, stop)


class SaveOutcome(str, Enum):
    SAVED = "saved"
    ALREADY_SAVED = "already_saved"
    FAILED = "failed"


@dataclass(frozen=True)
class RecognitionEvent:
    kind: EventKind
    match: Optional[RecognitionMatch] = None
    error: Optional[Exception] = None


@dataclass(frozen=True)
class RecognitionSnapshot:
    state: RecognitionState = RecognitionState.IDLE
    status_text: str = READY_TEXT
    match: Optional[RecognitionMatch] = None
    guitar_tab_url: Optional[str] = None
    piano_tab_url: Optional[str] = None
    guitar_tab_saved: bool = False
    piano_tab_saved: bool = False
    history_error: Optional[str] = None
    tab_error: Optional[str] = None
    show_permission_alert: bool = False
    fetched_tabs: tuple = ()
    lookup_error: Optional[str] = None


def _run_inline(fn):
    fn()


class RecognitionController:
    """
    Drives one listening session at a time:

        IDLE --start()--> LISTENING --match------> IDLE  (MATCHED, history row written)
                                    --no match---> IDLE  (NO_MATCH)
                                    --fault------> IDLE  (FAILED)
                                    --stop()-----> IDLE  (no outcome)

    Engine and permission callbacks can arrive on any thread; every state change is
    funnelled through `dispatch` so the snapshot is only ever mutated on the context
    that owns it. Blocking work (the tab lookup) goes through `background`.
    Each session gets a new id, and callbacks carrying an older id are dropped, so a
    restarted or stopped session can never be completed by a leftover buffer.
    """
    def __init__(
        self,
        store,
        app_state,
        engine,
        capture,
        permissions,
        tab_lookup=None,
        dispatch: Callable[[Callable[[], None]], None] = None,
        background: Callable[[Callable[[], None]], None] = None,
    ):
        self.store = store
        self.app_state = app_state
        self.engine = engine
        self.capture = capture
        self.permissions = permissions
        self.tab_lookup = tab_lookup
        self._dispatch = dispatch or _run_inline
        self._background = background or _run_inline

        self._snapshot = RecognitionSnapshot()
        self._listeners = []
        self._session_id = 0
        self._capture_open = False

    # --- Observation ---
    @property
    def snapshot(self) -> RecognitionSnapshot:
        return self._snapshot

    @property
    def state(self) -> RecognitionState:
        return self._snapshot.state

    def subscribe(self, listener):
        """`listener(event, snapshot)` is called after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _update(self, **changes):
        self._snapshot = replace(self._snapshot, **changes)

    def _emit(self, kind: EventKind, match: RecognitionMatch = None, error: Exception = None):
        event = RecognitionEvent(kind, match=match, error=error)
        for listener in list(self._listeners):
            listener(event, self._snapshot)

    # --- Session lifecycle ---
    def start(self):
        if self._snapshot.state is RecognitionState.LISTENING:
            logger.info("🔁 Restarting recognition: tearing down the previous session first")
            self._teardown()

        self._session_id += 1
        session_id = self._session_id
        self._update(state=RecognitionState.LISTENING)

        status = self.permissions.status()
        if status == PermissionStatus.GRANTED:
            self._begin_capture(session_id)
        elif status == PermissionStatus.UNDETERMINED:
            self.permissions.request(partial(self._on_permission_resolved, session_id))
        else:
            self._fail(PermissionDenied())

    def stop(self):
        # Invalidates pending permission callbacks and in-flight buffers
        self._session_id += 1
        was_listening = self._snapshot.state is RecognitionState.LISTENING
        self._teardown()
        if was_listening:
            logger.info("🛑 Recognition stopped by user")
            self._update(state=RecognitionState.IDLE, status_text=READY_TEXT, match=None, guitar_tab_url=None, piano_tab_url=None)
            self._emit(EventKind.UPDATED)

    def _deliver(self, session_id: int, result: EngineResult):
        # Bound to one session in _begin_capture; results from older sessions are dropped
        self._dispatch(lambda: self._handle_result(session_id, result))

    def acknowledge_permission_alert(self):
        self._update(show_permission_alert=False)
        self._emit(EventKind.UPDATED)

    def _on_permission_resolved(self, session_id: int, granted: bool):
        self._dispatch(lambda: self._resolve_permission(session_id, granted))

    def _resolve_permission(self, session_id: int, granted: bool):
        if not self._is_current(session_id):
            return
        if granted:
            self._begin_capture(session_id)
        else:
            self._fail(PermissionDenied())

    def _begin_capture(self, session_id: int):
        self.engine.reset(partial(self._deliver, session_id))
        self._update(
            match=None, guitar_tab_url=None, piano_tab_url=None,
            guitar_tab_saved=False, piano_tab_saved=False,
            history_error=None, tab_error=None,
            fetched_tabs=(), lookup_error=None,
        )

        self._capture_open = True
        try:
            self.capture.start(partial(self._on_buffer, session_id))
        except Exception as e:
            self._capture_open = False
            self._fail(CaptureFault(f"Could not start audio engine: {e}", cause=e))
            return

        # A device may hand over buffers from inside start(); the session can already be over
        if not self._capture_open or not self._is_current(session_id):
            return

        self._update(status_text=LISTENING_TEXT)
        logger.info("🎧 Listening...")
        self._emit(EventKind.STARTED)

    def _teardown(self):
        if not self._capture_open:
            return
        self._capture_open = False
        try:
            self.capture.stop()
        except Exception as e:
            logger.warning(f"⚠️ Could not stop audio capture cleanly: {e}")

    def _is_current(self, session_id: int) -> bool:
        return session_id == self._session_id and self._snapshot.state is RecognitionState.LISTENING

    # --- Engine results ---
    def _on_buffer(self, session_id: int, buffer):
        # Runs on the capture thread
        if session_id != self._session_id:
            return
        try:
            result = self.engine.feed(buffer)
        except Exception as e:
            fault = EngineFault(f"Could not attempt song match: {e}", cause=e)
            self._dispatch(lambda: self._handle_fault(session_id, fault))
            return
        if result.outcome is EngineOutcome.INSUFFICIENT_DATA:
            return
        self._dispatch(lambda: self._handle_result(session_id, result))

    def _handle_fault(self, session_id: int, fault: EngineFault):
        if self._is_current(session_id):
            self._fail(fault)

    def _handle_result(self, session_id: int, result: EngineResult):
        if not self._is_current(session_id):
            return
        if result.outcome is EngineOutcome.MATCH:
            self._on_match(result.match or RecognitionMatch())
        elif result.outcome is EngineOutcome.NO_MATCH:
            self._on_no_match(result.error)

    def _on_match(self, match: RecognitionMatch):
        self._teardown()
        guitar_url, piano_url = build_tab_search_urls(match.title, match.artist)
        self._update(
            state=RecognitionState.IDLE,
            status_text=FOUND_TEXT,
            match=match,
            guitar_tab_url=guitar_url,
            piano_tab_url=piano_url,
        )
        logger.success(f"🎯 Match: {match.title} by {match.artist}")

        self._refresh_saved_flags()
        self._record_history(match)
        self._emit(EventKind.MATCHED, match=match)

        if self.tab_lookup is not None and match.title and match.artist:
            self._start_lookup(match)

    def _on_no_match(self, error: Exception = None):
        self._teardown()
        text = f"No match found. Error: {error}" if error else NO_MATCH_TEXT
        self._update(state=RecognitionState.IDLE, status_text=text)
        logger.info("🤷 No match found")
        self._emit(EventKind.NO_MATCH, error=error)

    def _fail(self, error: TuneTutorError):
        self._teardown()
        if isinstance(error, PermissionDenied):
            self._update(state=RecognitionState.IDLE, status_text=MIC_NEEDED_TEXT, show_permission_alert=True)
        else:
            self._update(state=RecognitionState.IDLE, status_text=f"Error: {error.user_message}")
        logger.error(f"❌ Recognition failed: {error.detail}")
        self._emit(EventKind.FAILED, error=error)

    def _record_history(self, match: RecognitionMatch):
        profile = self.app_state.active_profile
        if profile is None:
            logger.warning("⚠️ No active local profile, cannot save to history.")
            self._update(history_error="No active profile to save history.")
            return

        record = RecognitionHistory(
            profile_id=profile.id,
            song_title=match.title or "Unknown Title",
            artist=match.artist,
            artwork_url=match.artwork_url,
            provider_track_id=match.provider_track_id,
        )
        try:
            self.store.append_history(record)
            self._update(history_error=None)
        except StoreIOError as e:
            logger.error(f"❌ Failed to save recognition history: {e}")
            self._update(history_error="Couldn't save to history. Please try again later.")

    # --- Saved tabs ---
    def check_saved_tabs(self):
        self._refresh_saved_flags()
        self._emit(EventKind.UPDATED)

    def _refresh_saved_flags(self):
        profile = self.app_state.active_profile
        if profile is None:
            return
        self._update(tab_error=None)
        for tab_type, url in ((TabType.GUITAR, self._snapshot.guitar_tab_url), (TabType.PIANO, self._snapshot.piano_tab_url)):
            if url is None:
                continue
            try:
                saved = self.store.find_tab(profile.id, url) is not None
            except StoreIOError as e:
                # Leave the flag alone, this may be a temporary store error
                logger.error(f"❌ Error checking saved {tab_type.value} tab: {e}")
                continue
            self._update(**{f"{tab_type.value}_tab_saved": saved})

    def save_guitar_tab(self) -> SaveOutcome:
        return self._save_tab(TabType.GUITAR, self._snapshot.guitar_tab_url)

    def save_piano_tab(self) -> SaveOutcome:
        return self._save_tab(TabType.PIANO, self._snapshot.piano_tab_url)

    def _save_tab(self, tab_type: TabType, url: Optional[str]) -> SaveOutcome:
        profile = self.app_state.active_profile
        match = self._snapshot.match
        title = match.title if match else None

        if profile is None or url is None or not title:
            message = f"Missing information to save {tab_type.value} tab."
            self._update(tab_error=message)
            self._emit(EventKind.UPDATED)
            raise MissingContext(message)

        flag = f"{tab_type.value}_tab_saved"
        record = SavedTab(
            profile_id=profile.id,
            song_title=title,
            artist=match.artist,
            tab_url=url,
            tab_type=tab_type.value,
        )
        try:
            _, created = self.store.save_tab_once(record)
        except StoreIOError as e:
            logger.error(f"❌ Error saving {tab_type.value} tab: {e}")
            self._update(**{flag: False}, tab_error=f"Failed to save {tab_type.value} tab.")
            self._emit(EventKind.UPDATED)
            return SaveOutcome.FAILED

        self._update(**{flag: True}, tab_error=None)
        self._emit(EventKind.UPDATED)
        return SaveOutcome.SAVED if created else SaveOutcome.ALREADY_SAVED

    # --- Catalog lookup ---
    def _start_lookup(self, match: RecognitionMatch):
        session_id = self._session_id

        def work():
            try:
                tabs = self.tab_lookup.lookup_tabs(match.title, match.artist)
            except TabLookupError as e:
                message = e.user_message
                self._dispatch(lambda: self._apply_lookup(session_id, (), message))
                return
            self._dispatch(lambda: self._apply_lookup(session_id, tuple(tabs), None))

        self._background(work)

    def _apply_lookup(self, session_id: int, tabs: tuple, error_message: Optional[str]):
        if session_id != self._session_id:
            return
        self._update(fetched_tabs=tabs, lookup_error=error_message)
        self._emit(EventKind.UPDATED)
