"""GitHub issues as the home of published reports."""

import logging
import re
from datetime import date as Date
from typing import Any

import requests

from .exceptions import IssueTrackerError
from .report import parse_report
from .types import Snapshot

logger = logging.getLogger("npmstats")

GITHUB_API = "https://api.github.com"

REPORT_LABEL = "npm-stats"
REPORT_LABELS = [REPORT_LABEL, "automated"]
ISSUE_TITLE = "📦 npm stats - {date}"
READY_COMMENT = "📊 Today's npm download report is ready!"

# How many recent report issues to search for a previous report
PREVIOUS_SEARCH_LIMIT = 30

_TITLE_DATE = re.compile(r"(\d{4}-\d{2}-\d{2})")

_API_ERRORS = (requests.RequestException, ValueError, KeyError, TypeError)


def issue_title(date: str) -> str:
    """Title of the report issue for ``date``."""
    return ISSUE_TITLE.format(date=date)


def _title_date(title: str) -> Date | None:
    match = _TITLE_DATE.search(title)
    if not match:
        return None
    try:
        return Date.fromisoformat(match.group(1))
    except ValueError:
        return None


class GitHubIssues:
    """Minimal client for the report issues of one repository."""

    def __init__(
        self,
        repository: str,
        token: str,
        session: requests.Session | None = None,
        timeout: float = 30,
    ):
        if "/" not in repository:
            raise IssueTrackerError(
                f"Repository must look like 'owner/repo', got '{repository}'"
            )
        self.repository = repository
        self.token = token
        self.session = session or requests.Session()
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.token}",
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{GITHUB_API}/repos/{self.repository}{path}"
        try:
            response = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
            response.raise_for_status()
            return response.json()
        except _API_ERRORS as e:
            raise IssueTrackerError(f"{method} {path} failed: {e}") from e

    def list_report_issues(self, state: str = "open", per_page: int = 10) -> list[dict]:
        """List issues carrying the report label, newest first."""
        issues = self._request(
            "GET",
            "/issues",
            params={
                "state": state,
                "labels": REPORT_LABEL,
                "per_page": per_page,
                "sort": "created",
                "direction": "desc",
            },
        )
        # The issues endpoint also returns pull requests
        return [i for i in issues if "pull_request" not in i]

    def get_issue(self, number: int) -> dict:
        return self._request("GET", f"/issues/{number}")

    def find_previous_snapshot(self, date: str) -> Snapshot | None:
        """Parse the most recent report dated strictly before ``date``.

        Returns None if no earlier report holds any parseable data or the
        issues cannot be read.
        """
        current = Date.fromisoformat(date)
        try:
            issues = self.list_report_issues(
                state="all", per_page=PREVIOUS_SEARCH_LIMIT
            )
            for issue in issues:
                issue_date = _title_date(issue.get("title", ""))
                if issue_date is None or issue_date >= current:
                    continue

                body = self.get_issue(issue["number"]).get("body")
                if not body:
                    continue

                snapshot = parse_report(body)
                if snapshot:
                    logger.info(
                        "Found previous stats in issue #%d (%s)",
                        issue["number"],
                        issue_date.isoformat(),
                    )
                    return snapshot
        except IssueTrackerError as e:
            logger.warning("Failed to get previous report: %s", e)
        return None

    def create_or_update_report(self, report: str, date: str) -> int:
        """Write ``report`` to the issue for ``date``, creating it if needed.

        Returns:
            The issue number.
        """
        title = issue_title(date)
        existing = next(
            (i for i in self.list_report_issues(state="open") if i.get("title") == title),
            None,
        )

        if existing is not None:
            self._request("PATCH", f"/issues/{existing['number']}", json={"body": report})
            logger.info("Updated existing issue #%d", existing["number"])
            return existing["number"]

        issue = self._request(
            "POST",
            "/issues",
            json={"title": title, "body": report, "labels": REPORT_LABELS},
        )
        number = issue["number"]
        logger.info("Created new issue #%d", number)

        self._request("POST", f"/issues/{number}/comments", json={"body": READY_COMMENT})
        return number
