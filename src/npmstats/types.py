"""Type definitions for npmstats using TypedDict for known structures."""

from typing import TypedDict

# Reserved snapshot key holding the aggregate totals. npm package names
# never start with an underscore, so it cannot collide with a package.
TOTAL_KEY = "_total"

PERIODS = ("last_day", "last_week", "last_month")


class PeriodCounts(TypedDict):
    """Download counts for the three reporting periods."""

    last_day: int
    last_week: int
    last_month: int


class _PackageStatBase(TypedDict):
    name: str
    last_day: int
    last_week: int
    last_month: int


class PackageStat(_PackageStatBase, total=False):
    """Download statistics for one package in one run.

    ``missing`` lists the periods whose count could not be fetched and was
    substituted with 0, as opposed to a confirmed zero.
    """

    missing: list[str]


class Growth(TypedDict):
    """Change between two counts, with the percentage as a one-decimal string."""

    change: int
    change_percent: str


# Package name (or TOTAL_KEY) -> counts
Snapshot = dict[str, PeriodCounts]
