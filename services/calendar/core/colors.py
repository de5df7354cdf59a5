"""
Fallback colors for calendars whose provider does not supply one.
"""

from typing import Tuple

CALENDAR_COLORS: Tuple[str, ...] = (
    "#3B82F6",  # blue
    "#EF4444",  # red
    "#10B981",  # emerald
    "#F59E0B",  # amber
    "#8B5CF6",  # violet
    "#EC4899",  # pink
    "#06B6D4",  # cyan
    "#F97316",  # orange
    "#84CC16",  # lime
    "#6366F1",  # indigo
    "#14B8A6",  # teal
    "#A855F7",  # purple
)


def assign_color(index: int) -> str:
    """
    Return the palette color for a zero-based calendar index.

    The palette is cycled, so any non-negative index maps to a color and the
    same index always maps to the same one.
    """
    if index < 0:
        raise ValueError(f"Color index must be non-negative, got {index}")
    return CALENDAR_COLORS[index % len(CALENDAR_COLORS)]
