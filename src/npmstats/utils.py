"""Utility functions for npmstats."""

import re
from collections.abc import Iterator
from decimal import ROUND_HALF_UP, Decimal

from .types import Growth

# -----------------------------------------------------------------------------
# Package Validation Constants
# -----------------------------------------------------------------------------

# npm package name pattern (optionally scoped, e.g. @scope/name)
# - Must not start with a period or underscore
# - Can contain lowercase alphanumerics, hyphens, periods, underscores and tildes
# - Max 214 characters including the scope
_PACKAGE_NAME_PATTERN = re.compile(
    r"^(?:@[a-z0-9~-][a-z0-9._~-]*/)?[a-z0-9~-][a-z0-9._~-]*$"
)
_MAX_PACKAGE_NAME_LENGTH = 214

# -----------------------------------------------------------------------------
# Growth Constants
# -----------------------------------------------------------------------------

GLYPH_UP = "↑"
GLYPH_DOWN = "↓"
GLYPH_FLAT = "→"

_ONE_DECIMAL = Decimal("0.1")


def validate_package_name(name: str) -> tuple[bool, str]:
    """Validate that a package name follows npm naming conventions.

    Args:
        name: Package name to validate.

    Returns:
        Tuple of (is_valid, error_message). If valid, error_message is empty.
    """
    if not name:
        return False, "Package name cannot be empty"

    if len(name) > _MAX_PACKAGE_NAME_LENGTH:
        return False, f"Package name exceeds {_MAX_PACKAGE_NAME_LENGTH} characters"

    if not _PACKAGE_NAME_PATTERN.match(name):
        return False, (
            "Package name must be lowercase, must not start with a period or "
            "underscore, and may only contain letters, numbers, hyphens, "
            "periods, underscores or tildes"
        )

    return True, ""


def chunked(items: list[str], size: int) -> Iterator[list[str]]:
    """Yield contiguous slices of ``items`` with at most ``size`` elements."""
    if size < 1:
        raise ValueError("size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def format_count(count: int) -> str:
    """Format a download count with thousands separators."""
    return f"{count:,}"


def calculate_growth(current: int, previous: int | None) -> Growth:
    """Calculate absolute and percentage growth between two counts.

    Without a baseline (``previous`` is None or 0) the whole current value
    counts as growth: 100.0% when it is positive, 0.0% otherwise.
    """
    if not previous:
        return {
            "change": current,
            "change_percent": "100.0" if current > 0 else "0.0",
        }

    change = current - previous
    percent = (Decimal(change) * 100 / Decimal(previous)).quantize(
        _ONE_DECIMAL, rounding=ROUND_HALF_UP
    )
    return {"change": change, "change_percent": str(percent)}


def format_growth(growth: Growth) -> str:
    """Render a growth value, e.g. ``↑ +1,200 (+12.5%)`` or ``↓ -20 (-40.0%)``."""
    change = growth["change"]
    if change == 0:
        return f"{GLYPH_FLAT} 0 (0.0%)"
    if change > 0:
        return f"{GLYPH_UP} +{format_count(change)} (+{growth['change_percent']}%)"
    return f"{GLYPH_DOWN} {format_count(change)} ({growth['change_percent']}%)"
