from __future__ import annotations
from typing import Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tabcatalog.logger import get_logger
from tabcatalog.models import Tab
from tabcatalog.services.tabs import create_tab, storage_guard

logger = get_logger("tabcatalog.seed")

EXAMPLE_TABS: List[Dict[str, str]] = [
    {
        "title": "Nothing Else Matters",
        "artist": "Metallica",
        "content": (
            "e|-------0-------0-------0-------0-------|\n"
            "B|-----1-----1-----1-----1-----1-----1---|\n"
            "G|---0-----0-----0-----0-----0-----0-----|\n"
            "D|---------------------------------------|\n"
            "A|---------------------------------------|\n"
            "E|-3-----3-----3-----3-----3-----3-------|"
        ),
    },
    {
        "title": "Wish You Were Here",
        "artist": "Pink Floyd",
        "content": (
            "e|-------0-------0-------0-------0-------|\n"
            "B|-----0-----0-----0-----0-----0-----0---|\n"
            "G|---1-----1-----1-----1-----1-----1-----|\n"
            "D|-2-----2-----2-----2-----2-----2-------|\n"
            "A|---------------------------------------|\n"
            "E|---------------------------------------|"
        ),
    },
    {
        "title": "Stairway to Heaven",
        "artist": "Led Zeppelin",
        "content": (
            "e|-------5-------7-------8-------7-------|\n"
            "B|-----5-----5-----5-----5-----5-----5---|\n"
            "G|---5-----5-----5-----5-----5-----5-----|\n"
            "D|---------------------------------------|\n"
            "A|---------------------------------------|\n"
            "E|---------------------------------------|"
        ),
    },
]


def count_tabs(db: Session) -> int:
    with storage_guard(db, "count tabs"):
        return int(db.scalar(select(func.count(Tab.id))))


def seed_example_tabs(db: Session) -> int:
    """
    Insert EXAMPLE_TABS when the store has no tabs yet.
    Returns how many were inserted (0 when the store already had data).
    """
    if count_tabs(db) > 0:
        return 0
    for t in EXAMPLE_TABS:
        create_tab(db, t["title"], t["artist"], t["content"])
    logger.info(f"Seeded {len(EXAMPLE_TABS)} example tabs")
    return len(EXAMPLE_TABS)
