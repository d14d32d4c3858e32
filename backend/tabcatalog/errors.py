"""
Domain errors raised by the store and aggregation services.
The HTTP layer turns each of them into a distinct response (see main.py).
"""


class TabCatalogError(Exception):
    """Base class for all recoverable catalog errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TabCatalogError):
    """Missing or out-of-range input."""


class NotFound(TabCatalogError):
    """Referenced tab does not exist."""

    def __init__(self, tab_id):
        super().__init__(f"Tab {tab_id} not found")
        self.tab_id = tab_id


class DuplicateRatingError(TabCatalogError):
    """This client already rated this tab."""

    def __init__(self, tab_id: int, client_key: str):
        super().__init__(f"Tab {tab_id} was already rated by this client")
        self.tab_id = tab_id
        self.client_key = client_key


class StorageError(TabCatalogError):
    """Underlying persistence failure; the operation had no effect."""
