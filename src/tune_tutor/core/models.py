from enum import Enum
from typing import Optional
from dataclasses import dataclass
from pydantic import BaseModel, Field, ConfigDict


class TabType(str, Enum):
    GUITAR = "guitar"
    PIANO = "piano"
    CHORDS = "chords"


PREFERENCES_VERSION = 1


class Preferences(BaseModel):
    """Decoded form of userProfile.preferencesJson."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = PREFERENCES_VERSION
    default_tab_type: TabType = Field(default=TabType.GUITAR, alias="defaultTabType")
    show_suggestions: bool = Field(default=False, alias="showSuggestions")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "Preferences":
        return cls.model_validate_json(raw)


@dataclass(frozen=True)
class RecognitionMatch:
    """What the fingerprint engine tells us about a matched song. Never persisted as-is."""
    title: Optional[str] = None
    artist: Optional[str] = None
    artwork_url: Optional[str] = None
    provider_track_id: Optional[str] = None
