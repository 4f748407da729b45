"""Shared fixtures: an in-memory npm downloads API and an isolated environment."""

import logging
from urllib.parse import unquote

import pytest
import requests

_PERIOD_KEYS = {"last-day": "last_day", "last-week": "last_week", "last-month": "last_month"}


class FakeResponse:
    """Stand-in for requests.Response."""

    def __init__(self, payload=None, status_code=200, invalid_json=False):
        self.payload = payload
        self.status_code = status_code
        self.invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


class FakeNpmApi:
    """Answers downloads/point URLs the way api.npmjs.org does.

    ``counts`` maps package name -> {"last_day": n, "last_week": n, "last_month": n}.
    Bulk queries return a keyed map with null for unknown names; single
    queries return one record, or a 404 for unknown names.
    """

    def __init__(self, counts):
        self.counts = counts
        self.fail_bulk = False
        self.fail_all = False
        self.fail_packages: set[str] = set()
        self.calls: list[str] = []

    def _record(self, name, period):
        return {
            "downloads": self.counts[name][period],
            "start": "2024-01-01",
            "end": "2024-01-31",
            "package": name,
        }

    def get(self, url, headers=None, timeout=None):
        self.calls.append(url)
        if self.fail_all:
            raise requests.ConnectionError("connection refused")

        path = url.split("/downloads/point/", 1)[1]
        period_path, spec = path.split("/", 1)
        period = _PERIOD_KEYS[period_path]
        names = [unquote(n) for n in spec.split(",")]

        if len(names) > 1:
            if self.fail_bulk:
                return FakeResponse({"error": "internal"}, status_code=500)
            return FakeResponse(
                {n: self._record(n, period) if n in self.counts else None for n in names}
            )

        name = names[0]
        if name in self.fail_packages:
            return FakeResponse(invalid_json=True)
        if name not in self.counts:
            return FakeResponse({"error": f"package {name} not found"}, status_code=404)
        return FakeResponse(self._record(name, period))


@pytest.fixture
def npm_counts():
    return {
        "alpha": {"last_day": 32, "last_week": 210, "last_month": 812},
        "beta": {"last_day": 18, "last_week": 97, "last_month": 401},
        "gamma": {"last_day": 0, "last_week": 3, "last_month": 12},
    }


@pytest.fixture
def fake_npm(npm_counts, monkeypatch):
    """Route requests.get to an in-memory npm API and skip batch pauses."""
    api = FakeNpmApi(npm_counts)
    monkeypatch.setattr("npmstats.api.requests.get", api.get)
    monkeypatch.setattr("npmstats.api.time.sleep", lambda seconds: None)
    return api


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep real config files and environment variables out of tests."""
    for var in ("NPMSTATS_USERNAME", "GITHUB_REPOSITORY", "GITHUB_TOKEN"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("npmstats.config.get_config_dir", lambda: tmp_path / ".npmstats")


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop handlers the CLI attaches so they do not outlive captured streams."""
    yield
    logging.getLogger("npmstats").handlers.clear()
