"""Get-or-create primitive shared by every destination write."""

import logging
from typing import Callable, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def ensure(
    key: str,
    lookup: Callable[[], Optional[T]],
    create: Callable[[], T],
) -> Tuple[T, bool]:
    """
    Return the entity identified by key, creating it only if missing.

    Errors from lookup or create propagate unchanged. Nothing is retried
    here; retries belong to the resilience policy around each call.

    Args:
        key: Stable identifier (name, title or source id), used for logging
        lookup: Returns the existing entity or None
        create: Creates the entity and returns it

    Returns:
        Tuple of (entity, created)
    """
    existing = lookup()
    if existing is not None:
        logger.debug(f"Reusing existing '{key}'")
        return existing, False

    created = create()
    logger.debug(f"Created '{key}'")
    return created, True


def get_or_create(
    key: str,
    lookup: Callable[[], Optional[T]],
    create: Callable[[], T],
) -> T:
    """Same as ensure() but returns only the entity."""
    entity, _ = ensure(key, lookup, create)
    return entity
