import requests
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, ConfigDict
from loguru import logger

from tune_tutor.core.config import TAB_CATALOG_URL, TAB_LOOKUP_TIMEOUT
from tune_tutor.core.errors import InvalidRequest, NetworkError, DecodeError
from tune_tutor.services.tabs.links import encode_query


class TabArtist(BaseModel):
    name: str


class TabResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    artist: TabArtist
    tab_types: list[str] = Field(default_factory=list, alias="tabTypes")


_results_adapter = TypeAdapter(list[TabResult])


class TabLookupClient:
    """
    Input: (song, artist)
    Output: list of TabResult from the public tab catalog

    One best-effort GET per call: no retry, no pagination, no caching.
    An empty JSON array is a valid answer and yields an empty list.
    """
    def __init__(self, base_url: str = TAB_CATALOG_URL, timeout: float = TAB_LOOKUP_TIMEOUT, http=None):
        self.base_url = base_url
        self.timeout = timeout
        self.http = http or requests

    def build_url(self, song: str, artist: str) -> str:
        if not isinstance(song, str) or not isinstance(artist, str):
            raise InvalidRequest(f"Song and artist must be text, got {song!r} / {artist!r}")
        try:
            pattern = encode_query(f"{artist} {song}")
        except UnicodeEncodeError as e:
            raise InvalidRequest(f"Could not encode tab query: {e}", cause=e) from e
        return f"{self.base_url}?pattern={pattern}"

    def lookup_tabs(self, song: str, artist: str) -> list[TabResult]:
        url = self.build_url(song, artist)
        logger.info(f"🔎 Looking up tabs for '{song}' by '{artist}'...")

        try:
            response = self.http.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"❌ Tab catalog request failed: {e}")
            raise NetworkError(str(e), cause=e) from e

        try:
            tabs = _results_adapter.validate_python(response.json())
        except (ValueError, ValidationError) as e:
            # requests' JSONDecodeError is a ValueError
            logger.error(f"❌ Could not decode tab catalog response: {e}")
            raise DecodeError(str(e), cause=e) from e

        logger.success(f"🎸 Found {len(tabs)} tabs for '{song}'")
        return tabs
