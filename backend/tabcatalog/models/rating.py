from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from tabcatalog.db import Base

MIN_RATING = 1
MAX_RATING = 5

class Rating(Base):
    __tablename__ = "ratings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    tab_id = Column(Integer, ForeignKey("tabs.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    # NULL keys are distinct under UNIQUE, so anonymous ratings are never deduplicated
    client_key = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    tab = relationship("Tab", back_populates="ratings")

    __table_args__ = (
        CheckConstraint(f"rating >= {MIN_RATING} AND rating <= {MAX_RATING}", name="ck_ratings_rating_range"),
        UniqueConstraint("tab_id", "client_key", name="uq_ratings_tab_client"),
    )
