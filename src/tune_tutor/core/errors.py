"""
Error taxonomy shared by the stores, the recognition controller and the lookup client.

Every error carries a `user_message`: call sites log the technical detail and show
the user_message instead of crashing. A "no match" is NOT an error, it is an event.
"""


class TuneTutorError(Exception):
    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str = None, cause: Exception = None):
        self.detail = detail or self.user_message
        self.cause = cause
        super().__init__(self.detail)


# --- Recognition ---
class PermissionDenied(TuneTutorError):
    user_message = "Microphone access is required to identify songs. Please enable it in Settings."


class CaptureFault(TuneTutorError):
    user_message = "Could not start listening. Check your microphone and try again."


class EngineFault(TuneTutorError):
    user_message = "Could not attempt a song match. Please try again."


class MissingContext(TuneTutorError):
    user_message = "Missing information to save this tab."


# --- Storage ---
class ProfileNotFound(TuneTutorError):
    user_message = "The specified user profile was not found."


class StoreIOError(TuneTutorError):
    user_message = "Couldn't reach local storage. Please try again later."


StoreError = StoreIOError


# --- Tab lookup ---
class TabLookupError(TuneTutorError):
    user_message = "Couldn't load tabs for this song."


class InvalidRequest(TabLookupError):
    user_message = "Invalid tab search."


class NetworkError(TabLookupError):
    user_message = "Couldn't reach the tab catalog. Check your connection."


class DecodeError(TabLookupError):
    user_message = "The tab catalog sent an unexpected response."
