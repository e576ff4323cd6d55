"""
Domain models for the Song Catalog service.

`Song` mirrors a stored record (the `songs` table / the LMDB `songs` database).
`NewSong` is the create payload: clients only choose the text fields, the
store assigns `id` and `play_count` always starts at zero.
"""
from __future__ import annotations

from pydantic import BaseModel, Field

SEARCHABLE_FIELDS: tuple[str, ...] = ("title", "artist", "genre")


class NewSong(BaseModel):
    """
    Candidate song submitted by a client.

    Unknown keys, including a client-supplied `id` or `play_count`, are dropped.
    """

    title: str = Field(..., description="Song title.")
    artist: str = Field(..., description="Performing artist.")
    genre: str = Field(..., description="Free-text genre label.")

    model_config = {
        "frozen": True,
        "extra": "ignore",
    }


class Song(BaseModel):
    """
    Representation of a single stored song.
    """

    id: int = Field(..., ge=1, description="Store-assigned identifier.")
    title: str = Field(..., description="Song title.")
    artist: str = Field(..., description="Performing artist.")
    genre: str = Field(..., description="Free-text genre label.")
    play_count: int = Field(0, ge=0, description="Number of recorded plays.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    @classmethod
    def from_new(cls, song_id: int, new: NewSong) -> "Song":
        return cls(id=song_id, title=new.title, artist=new.artist, genre=new.genre)

    def played(self) -> "Song":
        """Return a copy with the play counter advanced by exactly one."""
        return self.model_copy(update={"play_count": self.play_count + 1})


__all__ = ["NewSong", "SEARCHABLE_FIELDS", "Song"]
