"""
Logger factory.

Console output only, one handler per named logger, and SQLAlchemy's own
loggers held at WARNING unless SQL_ECHO is used.
"""
import logging
import os

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(name)s - %(message)s"


def get_logger(name: str = "tabcatalog", level: str | None = None) -> logging.Logger:
    """
    Return a logger with a console handler attached.

    Args:
        name: logger name
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (defaults to LOG_LEVEL env, then INFO)
    """
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.dialects").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.orm").setLevel(logging.WARNING)

    logger = logging.getLogger(name)

    # already configured
    if logger.handlers:
        return logger

    level = level or os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
