"""Shared utility functions for the Centinel ledger service."""

import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path

import colorlog


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a colorized format for the project."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def ensure_dir(path: str | Path) -> None:
    """Ensure a directory exists (like mkdir -p)."""
    Path(path).mkdir(parents=True, exist_ok=True)


def utcnow() -> datetime:
    """Get the current time as a naive UTC datetime, the storage representation."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_storage(value: datetime) -> datetime:
    """Convert a datetime to naive UTC; naive input is assumed to already be UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def as_utc(value: datetime) -> datetime:
    """Attach the UTC zone to a stored naive datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def period_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the half-open [start, end) bounds of the statement period containing ``now``.

    The statement period is the calendar month in UTC. Both bounds are naive UTC.
    """
    current = to_storage(now) if now is not None else utcnow()
    start = current.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    # day 28 + 4 days always lands in the next month
    end = (start.replace(day=28) + timedelta(days=4)).replace(day=1)
    return start, end


def in_period(value: datetime, now: datetime | None = None) -> bool:
    """Check whether ``value`` falls inside the statement period containing ``now``."""
    start, end = period_bounds(now)
    return start <= to_storage(value) < end


def money(value: object) -> Decimal:
    """Coerce a numeric value to a two-place Decimal."""
    return Decimal(str(value if value is not None else 0)).quantize(Decimal("0.01"))
