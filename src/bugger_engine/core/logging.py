"""Logging setup shared by the API and worker entry points."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once per process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # Engine echo is controlled by DEBUG; keep the pool quiet otherwise
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
