"""npm registry and download-stats API client functions."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any
from urllib.parse import quote

import requests

from .exceptions import DiscoveryError
from .types import PERIODS, PackageStat
from .utils import chunked

logger = logging.getLogger("npmstats")

NPM_API = "https://api.npmjs.org"
NPM_REGISTRY = "https://registry.npmjs.org"

# Packages per bulk download query
DEFAULT_BATCH_SIZE = 10

# Seconds to wait between bulk queries (rate limit courtesy)
DEFAULT_BATCH_PAUSE = 0.2

# Seconds before an HTTP request is abandoned
DEFAULT_TIMEOUT = 30

# Period key -> path segment of the downloads/point endpoint
PERIOD_PATHS = {
    "last_day": "last-day",
    "last_week": "last-week",
    "last_month": "last-month",
}

# Exceptions that indicate API/network errors (not programming bugs)
_API_ERRORS = (
    requests.RequestException,  # Network errors and non-success statuses
    ValueError,  # Malformed JSON response
    KeyError,  # Missing expected keys
    TypeError,  # Unexpected data types
    OSError,  # Network-related OS errors
)


class ResponseShape(Enum):
    """The payload layouts returned by the downloads/point endpoint."""

    KEYED = "keyed"  # {"name": {...} | null, ...} from a bulk query
    SINGLE = "single"  # {"downloads": n, "package": "name", ...}
    RECORDS = "records"  # [{"downloads": n, "package": "name"}, ...]
    ABSENT = "absent"  # null or anything unrecognised


def classify_response(response: Any) -> ResponseShape:
    """Decide which layout a decoded downloads response uses."""
    if isinstance(response, list):
        return ResponseShape.RECORDS
    if isinstance(response, dict):
        if isinstance(response.get("package"), str):
            return ResponseShape.SINGLE
        return ResponseShape.KEYED
    return ResponseShape.ABSENT


def _record_downloads(record: Any) -> int | None:
    if not isinstance(record, dict):
        return None
    downloads = record.get("downloads")
    if downloads is None:
        return None
    return int(downloads)


def resolve_count(response: Any, package: str) -> int | None:
    """Extract the download count of ``package`` from a decoded response.

    Returns None when the response carries no count for the package (a null
    bulk entry, a record for another package, or an unknown layout).
    """
    shape = classify_response(response)

    if shape is ResponseShape.KEYED:
        return _record_downloads(response.get(package))

    if shape is ResponseShape.SINGLE:
        if response["package"] == package:
            return _record_downloads(response)
        return None

    if shape is ResponseShape.RECORDS:
        for record in response:
            if isinstance(record, dict) and record.get("package") == package:
                return _record_downloads(record)
        return None

    return None


def process_response(response: Any, package: str) -> int:
    """Download count of ``package`` in ``response``, 0 when not present."""
    count = resolve_count(response, package)
    return count if count is not None else 0


def _http_get(
    url: str, session: requests.Session | None, timeout: float
) -> requests.Response:
    getter = session.get if session is not None else requests.get
    response = getter(url, headers={"Accept": "application/json"}, timeout=timeout)
    response.raise_for_status()
    return response


def fetch_point(
    period: str,
    packages: list[str],
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    """Fetch point download counts for one or more packages over a period.

    Several packages are queried at once by joining their names with commas.

    Raises:
        requests.RequestException: On network errors or non-success status.
        ValueError: If the body is not valid JSON.
    """
    spec = ",".join(quote(name, safe="") for name in packages)
    url = f"{NPM_API}/downloads/point/{PERIOD_PATHS[period]}/{spec}"
    return _http_get(url, session, timeout).json()


def _build_stat(name: str, counts: dict[str, int | None]) -> PackageStat:
    stat: PackageStat = {
        "name": name,
        "last_day": counts["last_day"] or 0,
        "last_week": counts["last_week"] or 0,
        "last_month": counts["last_month"] or 0,
    }
    missing = [period for period in PERIODS if counts[period] is None]
    if missing:
        stat["missing"] = missing
    return stat


def fetch_group_stats(
    packages: list[str],
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[PackageStat]:
    """Fetch day, week and month counts for a group with one query per period.

    The three queries run in parallel. Any failed query fails the whole group.
    """
    with ThreadPoolExecutor(max_workers=len(PERIODS)) as executor:
        futures = {
            period: executor.submit(fetch_point, period, packages, session, timeout)
            for period in PERIODS
        }
        responses = {period: future.result() for period, future in futures.items()}

    return [
        _build_stat(
            pkg, {period: resolve_count(responses[period], pkg) for period in PERIODS}
        )
        for pkg in packages
    ]


def _fetch_single_or_none(
    period: str,
    package: str,
    session: requests.Session | None,
    timeout: float,
) -> int | None:
    try:
        return resolve_count(fetch_point(period, [package], session, timeout), package)
    except _API_ERRORS as e:
        logger.debug("Error fetching %s downloads for %s: %s", period, package, e)
        return None


def fetch_package_stats_fallback(
    packages: list[str],
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[PackageStat]:
    """Fetch stats one package at a time, substituting 0 for anything that fails.

    Always returns exactly one stat per input package and never raises.
    """
    stats: list[PackageStat] = []

    for pkg in packages:
        try:
            with ThreadPoolExecutor(max_workers=len(PERIODS)) as executor:
                futures = {
                    period: executor.submit(
                        _fetch_single_or_none, period, pkg, session, timeout
                    )
                    for period in PERIODS
                }
                counts = {period: future.result() for period, future in futures.items()}
            stats.append(_build_stat(pkg, counts))
        except Exception as e:  # noqa: BLE001
            logger.warning("Failed to fetch stats for %s: %s", pkg, e)
            stats.append(_build_stat(pkg, dict.fromkeys(PERIODS)))

    return stats


def fetch_all_package_stats(
    packages: list[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
    batch_pause: float = DEFAULT_BATCH_PAUSE,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[PackageStat]:
    """Fetch stats for multiple packages in bulk groups.

    Groups are processed strictly one after another with a pause between
    them. A group whose bulk query fails is retried package by package.

    Args:
        packages: Package names, in the order the result should keep.
        batch_size: Maximum number of packages per bulk query.
        batch_pause: Seconds to sleep between groups.
        session: Optional requests session shared by all queries.
        timeout: Per-request timeout in seconds.

    Returns:
        One stat per input package, in input order.
    """
    stats: list[PackageStat] = []

    for index, group in enumerate(chunked(packages, batch_size)):
        if index > 0:
            time.sleep(batch_pause)
        try:
            stats.extend(fetch_group_stats(group, session, timeout))
        except _API_ERRORS as e:
            logger.warning(
                "Batch request failed, falling back to individual requests: %s", e
            )
            stats.extend(fetch_package_stats_fallback(group, session, timeout))

    return stats


def fetch_user_packages(
    username: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[str]:
    """List the names of all packages published by ``username``.

    Raises:
        DiscoveryError: If the registry cannot be reached or answers oddly.
    """
    url = f"{NPM_REGISTRY}/-/user/{quote(username, safe='')}/package"
    try:
        data = _http_get(url, session, timeout).json()
    except _API_ERRORS as e:
        raise DiscoveryError(f"Failed to fetch packages for {username}: {e}") from e

    if not isinstance(data, dict):
        raise DiscoveryError(f"Unexpected package listing for {username}")
    return list(data)
