import random
from pydantic import BaseModel


class Suggestion(BaseModel):
    title: str
    artist: str
    difficulty: str


# Static demo data until a real recommendation backend exists
SAMPLE_SUGGESTIONS = [
    Suggestion(title="Blackbird", artist="The Beatles", difficulty="Intermediate"),
    Suggestion(title="Dust in the Wind", artist="Kansas", difficulty="Intermediate"),
    Suggestion(title="Tears in Heaven", artist="Eric Clapton", difficulty="Advanced"),
    Suggestion(title="Time of Your Life", artist="Green Day", difficulty="Beginner"),
    Suggestion(title="Layla", artist="Eric Clapton", difficulty="Advanced"),
]


def list_suggestions(shuffle: bool = False) -> list[Suggestion]:
    suggestions = list(SAMPLE_SUGGESTIONS)
    if shuffle:
        random.shuffle(suggestions)
    return suggestions


def search_songs(query: str) -> list[str]:
    """Case-insensitive match on title or artist, formatted as 'Title - Artist'."""
    needle = query.lower()
    return [
        f"{s.title} - {s.artist}"
        for s in SAMPLE_SUGGESTIONS
        if needle in s.title.lower() or needle in s.artist.lower()
    ]
