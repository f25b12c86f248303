from enum import Enum
from typing import Callable, Optional, Protocol, Any
from dataclasses import dataclass

from tune_tutor.core.models import RecognitionMatch

"""
Contracts for the platform pieces the recognition controller drives.

Fingerprinting, audio capture and microphone permission are black boxes: the
controller only needs the small surface described here. Implementations wrap
whatever the host platform provides.
"""


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


class PermissionGate(Protocol):
    def status(self) -> PermissionStatus: ...

    def request(self, callback: Callable[[bool], None]) -> None:
        """Asks the user once; `callback(granted)` may fire later on any thread."""


class CaptureDevice(Protocol):
    def start(self, on_buffer: Callable[[Any], None]) -> None:
        """Opens the exclusive audio input and streams buffers to `on_buffer`. Raises on hardware failure."""

    def stop(self) -> None: ...


class EngineOutcome(str, Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    MATCH = "match"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class EngineResult:
    outcome: EngineOutcome
    match: Optional[RecognitionMatch] = None
    error: Optional[Exception] = None  # set when the engine gives a reason for a no-match

    @classmethod
    def insufficient_data(cls):
        return cls(EngineOutcome.INSUFFICIENT_DATA)

    @classmethod
    def matched(cls, match: RecognitionMatch):
        return cls(EngineOutcome.MATCH, match=match)

    @classmethod
    def no_match(cls, error: Exception = None):
        return cls(EngineOutcome.NO_MATCH, error=error)


class FingerprintEngine(Protocol):
    def reset(self, report: Callable[[EngineResult], None]) -> None:
        """
        Drops any signature accumulated by a previous session. Engines that answer
        asynchronously hand their results to `report`, which is bound to the new session.
        """

    def feed(self, buffer: Any) -> EngineResult:
        """Appends one audio buffer and attempts a match. Raising means an engine fault."""
