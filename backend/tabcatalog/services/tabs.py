from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tabcatalog.errors import DuplicateRatingError, NotFound, StorageError, ValidationError
from tabcatalog.logger import get_logger
from tabcatalog.models import MAX_ID, MAX_RATING, MIN_RATING, Rating, Tab

logger = get_logger("tabcatalog.tabs")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def storage_guard(db: Session, action: str) -> Iterator[None]:
    """
    Roll back and re-raise any persistence failure as StorageError so callers
    never see a half-written tab or rating.
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure while trying to {action}: {e}")
        raise StorageError(f"Could not {action}") from e


# Search helpers (shared with the aggregate queries)
def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_filter(term: Optional[str]):
    """
    Case-insensitive substring match on title OR artist.
    Returns None when there is nothing to filter on.
    """
    if not term:
        return None
    pattern = _like_pattern(term)
    return or_(
        Tab.title.ilike(pattern, escape="\\"),
        Tab.artist.ilike(pattern, escape="\\"),
    )


# newest first; id breaks ties between tabs created in the same instant
NEWEST_FIRST = (Tab.created_at.desc(), Tab.id.desc())


def require_tab_id(tab_id) -> None:
    """Ids that no tabs row can have are simply not found."""
    if isinstance(tab_id, bool) or not isinstance(tab_id, int) or not 1 <= tab_id <= MAX_ID:
        raise NotFound(tab_id)


# Tabs
def _require_text(**fields) -> None:
    missing = [name for name, v in fields.items() if not isinstance(v, str) or v == ""]
    if missing:
        raise ValidationError("All fields are required: " + ", ".join(missing))


def create_tab(db: Session, title: str, artist: str, content: str) -> int:
    """
    Insert a tab and return its id. title, artist and content must be
    non-empty strings; all three are stored as-is.
    """
    _require_text(title=title, artist=artist, content=content)

    now = _utcnow()
    tab = Tab(title=title, artist=artist, content=content, created_at=now, updated_at=now)
    with storage_guard(db, "create tab"):
        db.add(tab)
        db.commit()

    logger.info(f"Tab {tab.id} created: {artist} - {title}")
    return tab.id


def get_tab(db: Session, tab_id: int) -> Tab:
    require_tab_id(tab_id)
    with storage_guard(db, f"load tab {tab_id}"):
        tab = db.get(Tab, tab_id)
    if tab is None:
        raise NotFound(tab_id)
    return tab


def list_tabs(db: Session, search: Optional[str] = None) -> List[Tab]:
    stmt = select(Tab)
    cond = search_filter(search)
    if cond is not None:
        stmt = stmt.where(cond)
    stmt = stmt.order_by(*NEWEST_FIRST)

    with storage_guard(db, "list tabs"):
        return list(db.scalars(stmt).all())


# Ratings
def _validate_rating(rating) -> None:
    # bool is an int subclass; True must not count as a 1-star vote
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be an integer from {MIN_RATING} to {MAX_RATING}")


def _rating_conflict(db: Session, tab_id: int, client_key: Optional[str]) -> Exception:
    """
    Work out why a rating insert hit a constraint, by looking at the state
    that won.
    """
    try:
        if client_key is not None:
            existing = db.scalar(
                select(Rating.id).where(Rating.tab_id == tab_id, Rating.client_key == client_key)
            )
            if existing is not None:
                return DuplicateRatingError(tab_id, client_key)
        if db.get(Tab, tab_id) is None:
            return NotFound(tab_id)
        return StorageError(f"Rating for tab {tab_id} violated a storage constraint")
    except SQLAlchemyError as e:
        logger.error(f"Storage failure while inspecting rating conflict: {e}")
        return StorageError("Could not add rating")
    finally:
        db.rollback()


def add_rating(db: Session, tab_id: int, rating: int, client_key: Optional[str] = None) -> int:
    """
    Store one rating for a tab and return its id.

    The (tab_id, client_key) unique constraint decides duplicates, so two
    concurrent submissions from one client cannot both land. An empty
    client_key counts as anonymous; anonymous ratings are never deduplicated.
    """
    _validate_rating(rating)
    if client_key is not None and not isinstance(client_key, str):
        raise ValidationError("client_key must be a string")
    client_key = client_key or None
    require_tab_id(tab_id)

    with storage_guard(db, f"add rating to tab {tab_id}"):
        if db.get(Tab, tab_id) is None:
            raise NotFound(tab_id)

        row = Rating(tab_id=tab_id, rating=rating, client_key=client_key, created_at=_utcnow())
        db.add(row)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            err = _rating_conflict(db, tab_id, client_key)
            if isinstance(err, DuplicateRatingError):
                logger.info(f"Duplicate rating rejected for tab {tab_id}")
            else:
                logger.warning(f"Rating for tab {tab_id} rejected by the store: {e.orig}")
            raise err from e

    logger.info(f"Rating {row.id} added to tab {tab_id}: {rating}")
    return row.id
