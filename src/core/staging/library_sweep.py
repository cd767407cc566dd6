"""Library "New" flag sweep. Independent of session expiry."""

import logging
from datetime import datetime
from typing import Optional

from .models import utc_now
from .stores import ExerciseLibrary


logger = logging.getLogger(__name__)


def clear_expired_new_flags(library: ExerciseLibrary, now: Optional[datetime] = None) -> list[str]:
    """Clear is_new on cards past their new-flag TTL and return their names."""
    cleared = library.clear_expired_new_flags(now or utc_now())
    names = [card.name for card in cleared]
    logger.info("Cleared expired new flags", extra={"cleared": len(names)})
    return names
