"""npmstats - Daily npm download reports with growth against the last report.

Fetches download counts for a publisher's packages from the npm API, compares
them with the counts recorded in the previous report, and renders a Markdown
report that is published as a GitHub issue.
"""

from .api import (
    ResponseShape,
    classify_response,
    fetch_all_package_stats,
    fetch_group_stats,
    fetch_package_stats_fallback,
    fetch_point,
    fetch_user_packages,
    process_response,
    resolve_count,
)
from .config import Config, load_config
from .exceptions import ConfigError, DiscoveryError, IssueTrackerError, NpmStatsError
from .issues import GitHubIssues
from .report import generate_report, parse_report, sum_stats
from .types import TOTAL_KEY, Growth, PackageStat, PeriodCounts, Snapshot
from .utils import calculate_growth, format_growth

__version__ = "0.1.0"

__all__ = [
    "Config",
    "ConfigError",
    "DiscoveryError",
    "GitHubIssues",
    "Growth",
    "IssueTrackerError",
    "NpmStatsError",
    "PackageStat",
    "PeriodCounts",
    "ResponseShape",
    "Snapshot",
    "TOTAL_KEY",
    "calculate_growth",
    "classify_response",
    "fetch_all_package_stats",
    "fetch_group_stats",
    "fetch_package_stats_fallback",
    "fetch_point",
    "fetch_user_packages",
    "format_growth",
    "generate_report",
    "load_config",
    "parse_report",
    "process_response",
    "resolve_count",
    "sum_stats",
]
