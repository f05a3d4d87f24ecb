"""
Gastronomique - Shared Utilities

Common helpers used across multiple modules to avoid duplication.
"""

import re
from typing import Optional


def slugify(text: str) -> str:
    """
    Turn a name or title into a URL slug.

    Only ASCII word characters survive, so a purely Thai title yields an
    empty string and callers must supply the slug explicitly.
    """
    result = text.lower().strip()
    result = re.sub(r"[^\w\s-]", "", result, flags=re.ASCII)
    result = re.sub(r"[\s_-]+", "-", result)
    return result.strip("-")


def format_time(minutes: int) -> str:
    """Format a duration in minutes as Thai text (e.g. ``1 ชั่วโมง 30 นาที``)."""
    if minutes < 60:
        return f"{minutes} นาที"
    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f"{hours} ชั่วโมง"
    return f"{hours} ชั่วโมง {mins} นาที"


def truncate(text: str, length: int) -> str:
    """Cut *text* to *length* characters, appending an ellipsis when shortened."""
    if len(text) <= length:
        return text
    return text[:length] + "..."


def total_time(prep_time: Optional[int], cook_time: Optional[int]) -> int:
    """Total recipe time in minutes, treating missing values as zero."""
    return (prep_time or 0) + (cook_time or 0)
