"""Request/response bodies of the /api/tabs endpoints."""
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from tabcatalog.services.ratings import RatedTab


class TabCreate(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    content: Optional[str] = None


class RatingCreate(BaseModel):
    rating: Optional[int] = None
    client_key: Optional[str] = Field(
        None, validation_alias=AliasChoices("user_ip", "client_key")
    )


class TabOut(BaseModel):
    id: int
    title: str
    artist: str
    content: str
    created_at: datetime
    updated_at: datetime
    rating: float
    votes: int

    @classmethod
    def from_rated(cls, rated: RatedTab) -> "TabOut":
        t = rated.tab
        return cls(
            id=t.id,
            title=t.title,
            artist=t.artist,
            content=t.content,
            created_at=t.created_at,
            updated_at=t.updated_at,
            rating=rated.rating,
            votes=rated.votes,
        )


class TabCreated(BaseModel):
    id: int
    message: str = "Tab added"


class RatingAdded(BaseModel):
    message: str = "Rating added"
    new_rating: str
    votes: int
