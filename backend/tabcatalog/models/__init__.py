from tabcatalog.models.tab import MAX_ID, Tab
from tabcatalog.models.rating import Rating, MIN_RATING, MAX_RATING

__all__ = ["Tab", "MAX_ID", "Rating", "MIN_RATING", "MAX_RATING"]
