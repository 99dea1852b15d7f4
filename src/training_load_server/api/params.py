"""Shared request parameter helpers."""

import re
from datetime import UTC, date, datetime, timedelta

from litestar.exceptions import ValidationException

# Regex for valid user_id format (alphanumeric, underscores, hyphens)
USER_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")


def validate_user_id(user_id: str) -> str:
    """Validate user_id format.

    Raises:
        ValidationException: If user_id format is invalid
    """
    if not user_id or len(user_id) > 100:
        raise ValidationException("Invalid user_id: must be 1-100 characters")
    if not USER_ID_PATTERN.match(user_id):
        raise ValidationException("Invalid user_id: must be alphanumeric with _ or - only")
    return user_id


def resolve_window(start: date | None, end: date | None, default_days: int) -> tuple[date, date]:
    """Fill in a [start, end] date window ending today by default."""
    end = end or datetime.now(UTC).date()
    start = start or end - timedelta(days=default_days - 1)
    return start, end
