from urllib.parse import quote
from tune_tutor.core.config import GUITAR_TAB_SEARCH_URL


def encode_query(text: str) -> str:
    """Percent-encodes everything outside the unreserved set, so spaces become %20 (never '+')."""
    return quote(text, safe="")


def build_tab_search_urls(title: str | None, artist: str | None, template: str = GUITAR_TAB_SEARCH_URL):
    """
    Returns (guitar_url, piano_url) for a matched song, or (None, None) when either
    the title or the artist is unknown. The piano link is the same search with "%20piano"
    appended to the query value.
    """
    if not title or not artist:
        return None, None

    encoded = encode_query(f"{title} {artist}")
    guitar_url = template.format(query=encoded)
    piano_url = template.format(query=f"{encoded}%20piano")
    return guitar_url, piano_url
