from sqlalchemy import Column, DateTime, Integer, Text
from sqlalchemy.orm import relationship
from tabcatalog.db import Base

# largest id a 64-bit INTEGER column can hold
MAX_ID = 2**63 - 1

class Tab(Base):
    __tablename__ = "tabs"
    # sqlite_autoincrement: ids are never reused, even after deletes
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    artist = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    # written once at insert, no operation updates a tab
    updated_at = Column(DateTime(timezone=True), nullable=False)

    ratings = relationship(
        "Rating",
        back_populates="tab",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Tab id={self.id} {self.artist!r} - {self.title!r}>"
