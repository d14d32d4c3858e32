from __future__ import annotations
from decimal import ROUND_HALF_UP, Decimal
from typing import List, NamedTuple, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tabcatalog.errors import NotFound
from tabcatalog.models import Rating, Tab
from tabcatalog.services.tabs import NEWEST_FIRST, require_tab_id, search_filter, storage_guard


class RatedTab(NamedTuple):
    tab: Tab
    rating: float
    votes: int


def _display_rating(avg) -> float:
    """Mean rounded half up to one decimal (2.25 -> 2.3); 0.0 when there are no votes."""
    if avg is None:
        return 0.0
    return float(Decimal(str(avg)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _rated_tabs_stmt():
    """
    tabs LEFT JOIN ratings, grouped per tab:
      avg   -> NULL when the tab has no ratings
      votes -> COUNT(ratings.id), 0 for no ratings
    """
    return (
        select(
            Tab,
            func.avg(Rating.rating).label("avg"),
            func.count(Rating.id).label("votes"),
        )
        .outerjoin(Rating, Rating.tab_id == Tab.id)
        .group_by(Tab.id)
    )


def rating_summary(db: Session, tab_id: int) -> Tuple[float, int]:
    """
    Return (average, votes) for one tab, read fresh from the ratings table.
    """
    require_tab_id(tab_id)
    stmt = select(func.avg(Rating.rating), func.count(Rating.id)).where(Rating.tab_id == tab_id)
    with storage_guard(db, f"aggregate ratings for tab {tab_id}"):
        avg, votes = db.execute(stmt).one()
    return _display_rating(avg), int(votes)


def with_aggregate(db: Session, tab: Tab) -> RatedTab:
    rating, votes = rating_summary(db, tab.id)
    return RatedTab(tab, rating, votes)


def list_with_aggregates(db: Session, search: Optional[str] = None) -> List[RatedTab]:
    """
    Same filter and order as services.tabs.list_tabs, with (rating, votes)
    joined onto every tab in a single query.
    """
    stmt = _rated_tabs_stmt()
    cond = search_filter(search)
    if cond is not None:
        stmt = stmt.where(cond)
    stmt = stmt.order_by(*NEWEST_FIRST)

    with storage_guard(db, "list rated tabs"):
        rows = db.execute(stmt).all()
    return [RatedTab(tab, _display_rating(avg), int(votes)) for (tab, avg, votes) in rows]


def get_with_aggregate(db: Session, tab_id: int) -> RatedTab:
    require_tab_id(tab_id)
    stmt = _rated_tabs_stmt().where(Tab.id == tab_id)
    with storage_guard(db, f"load rated tab {tab_id}"):
        row = db.execute(stmt).first()
    if row is None:
        raise NotFound(tab_id)
    tab, avg, votes = row
    return RatedTab(tab, _display_rating(avg), int(votes))
