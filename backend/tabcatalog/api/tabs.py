from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from tabcatalog.db import get_db
from tabcatalog.models import MAX_ID
from tabcatalog.schemas import RatingAdded, RatingCreate, TabCreate, TabCreated, TabOut
from tabcatalog.services import ratings as rating_svc
from tabcatalog.services import tabs as tab_svc

router = APIRouter(prefix="/api/tabs", tags=["tabs"])

TabId = Annotated[int, Path(ge=1, le=MAX_ID)]

@router.get("", response_model=List[TabOut])
def list_tabs(search: Optional[str] = Query(None, description="Case-insensitive title/artist substring"),
              db: Session = Depends(get_db)):
    return [TabOut.from_rated(r) for r in rating_svc.list_with_aggregates(db, search)]

@router.get("/{tab_id}", response_model=TabOut)
def get_tab(tab_id: TabId, db: Session = Depends(get_db)):
    return TabOut.from_rated(rating_svc.get_with_aggregate(db, tab_id))

@router.post("", response_model=TabCreated)
def create_tab(body: TabCreate, db: Session = Depends(get_db)):
    tab_id = tab_svc.create_tab(db, body.title, body.artist, body.content)
    return TabCreated(id=tab_id)

@router.post("/{tab_id}/rate", response_model=RatingAdded)
def rate_tab(tab_id: TabId, body: RatingCreate, db: Session = Depends(get_db)):
    """
    Add one rating and answer with the tab's fresh aggregate.
    user_ip (or client_key) limits a client to one rating per tab.
    """
    tab_svc.add_rating(db, tab_id, body.rating, body.client_key)
    rating, votes = rating_svc.rating_summary(db, tab_id)
    return RatingAdded(new_rating=f"{rating:.1f}", votes=votes)
