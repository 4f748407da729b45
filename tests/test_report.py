"""Tests for rendering and re-parsing the Markdown report."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from npmstats.report import generate_report, parse_report, sum_stats
from npmstats.types import TOTAL_KEY

GENERATED_AT = datetime(2024, 3, 5, 8, 30, 0, tzinfo=ZoneInfo("UTC"))


def _stat(name, day, week, month):
    return {"name": name, "last_day": day, "last_week": week, "last_month": month}


def _render(stats, previous=None, **kwargs):
    kwargs.setdefault("generated_at", GENERATED_AT)
    return generate_report(stats, "2024-03-05", previous, **kwargs)


def _table_rows(report):
    return [line for line in report.splitlines() if line.startswith("| `")]


@pytest.fixture
def sample_stats():
    return [_stat("a", 32, 210, 812), _stat("b", 18, 97, 401)]


class TestGenerateReport:
    """Tests for generate_report."""

    def test_header_and_timestamp(self, sample_stats):
        report = _render(sample_stats)
        assert report.startswith("## 📦 npm downloads report (2024-03-05)")
        assert "> Generated at 2024-03-05 08:30:00 UTC" in report

    def test_timestamp_uses_timezone(self, sample_stats):
        report = generate_report(
            sample_stats,
            "2024-03-05",
            generated_at=GENERATED_AT.astimezone(ZoneInfo("Asia/Shanghai")),
        )
        assert "> Generated at 2024-03-05 16:30:00 CST" in report

    def test_default_timestamp_is_now(self, sample_stats):
        report = generate_report(sample_stats, "2024-03-05", timezone="UTC")
        assert "> Generated at " in report
        assert report.splitlines()[2].endswith(" UTC")

    def test_totals_without_previous(self, sample_stats):
        """Totals carry no growth annotation when there is no previous report."""
        report = _render(sample_stats)
        assert "- **Total downloads today**: 50\n" in report
        assert "- **Total downloads this week**: 307\n" in report
        assert "- **Total downloads this month**: 1,213\n" in report
        for glyph in ("↑", "↓", "→"):
            assert glyph not in report

    def test_rows_sorted_by_week(self, sample_stats):
        rows = _table_rows(_render(list(reversed(sample_stats))))
        assert rows == ["| `a` | 32 | 210 | 812 |", "| `b` | 18 | 97 | 401 |"]

    def test_sort_is_stable(self):
        """Packages with equal weekly counts keep their input order."""
        stats = [
            _stat("ten", 1, 10, 1),
            _stat("first-thirty", 1, 30, 1),
            _stat("second-thirty", 1, 30, 1),
            _stat("five", 1, 5, 1),
        ]
        rows = _table_rows(_render(stats))
        names = [row.split("`")[1] for row in rows]
        assert names == ["first-thirty", "second-thirty", "ten", "five"]

    def test_growth_against_previous(self, sample_stats):
        previous = {
            TOTAL_KEY: {"last_day": 40, "last_week": 307, "last_month": 1300},
            "a": {"last_day": 16, "last_week": 210, "last_month": 1000},
        }
        report = _render(sample_stats, previous)

        assert "- **Total downloads today**: 50 (↑ +10 (+25.0%))" in report
        assert "- **Total downloads this week**: 307 (→ 0 (0.0%))" in report
        assert "- **Total downloads this month**: 1,213 (↓ -87 (-6.7%))" in report

        rows = _table_rows(report)
        assert rows[0] == "| `a` | 32 ↑ +16 (+100.0%) | 210 → 0 (0.0%) | 812 ↓ -188 (-18.8%) |"
        # No previous entry for b: plain counts, not zero growth
        assert rows[1] == "| `b` | 18 | 97 | 401 |"

    def test_previous_without_totals(self, sample_stats):
        """A previous snapshot lacking totals compares against no baseline."""
        report = _render(sample_stats, {"a": {"last_day": 32, "last_week": 210, "last_month": 812}})
        assert "- **Total downloads today**: 50 (↑ +50 (+100.0%))" in report

    def test_empty_previous_same_as_none(self, sample_stats):
        assert _render(sample_stats, {}) == _render(sample_stats, None)

    def test_footer(self, sample_stats):
        assert _render(sample_stats).endswith("*Generated by npmstats*")
        report = _render(sample_stats, repository="octo/stats")
        assert report.endswith("*Generated by [npmstats](https://github.com/octo/stats)*")

    def test_large_counts(self):
        report = _render([_stat("big", 1234, 56789, 1234567)])
        assert _table_rows(report) == ["| `big` | 1,234 | 56,789 | 1,234,567 |"]


class TestParseReport:
    """Tests for parse_report."""

    def test_round_trip(self, sample_stats):
        snapshot = parse_report(_render(sample_stats))
        assert snapshot == {
            TOTAL_KEY: sum_stats(sample_stats),
            "a": {"last_day": 32, "last_week": 210, "last_month": 812},
            "b": {"last_day": 18, "last_week": 97, "last_month": 401},
        }

    def test_round_trip_with_growth(self, sample_stats):
        """Growth annotations are ignored when reading counts back."""
        previous = {
            TOTAL_KEY: {"last_day": 999, "last_week": 1, "last_month": 5000},
            "a": {"last_day": 1, "last_week": 500, "last_month": 812},
            "b": {"last_day": 18, "last_week": 0, "last_month": 2000},
        }
        snapshot = parse_report(_render(sample_stats, previous))
        assert snapshot[TOTAL_KEY] == {"last_day": 50, "last_week": 307, "last_month": 1213}
        assert snapshot["a"] == {"last_day": 32, "last_week": 210, "last_month": 812}
        assert snapshot["b"] == {"last_day": 18, "last_week": 97, "last_month": 401}

    def test_round_trip_many_packages(self):
        stats = [_stat(f"pkg-{i}", i * 3, i * 1000 + 7, i * 98765) for i in range(30)]
        snapshot = parse_report(_render(stats))
        for s in stats:
            assert snapshot[s["name"]] == {
                "last_day": s["last_day"],
                "last_week": s["last_week"],
                "last_month": s["last_month"],
            }
        assert snapshot[TOTAL_KEY] == sum_stats(stats)

    def test_round_trip_scoped_names(self):
        stats = [_stat("@scope/pkg", 1, 2, 3)]
        assert parse_report(_render(stats))["@scope/pkg"] == {
            "last_day": 1,
            "last_week": 2,
            "last_month": 3,
        }

    def test_pipe_in_name_survives(self):
        """A pipe inside a package name neither breaks nor drops the row."""
        stats = [_stat("odd|name", 4, 5, 6), _stat("plain", 1, 2, 3)]
        report = _render(stats)
        assert "| `odd\\|name` | 4 | 5 | 6 |" in report
        snapshot = parse_report(report)
        assert snapshot["odd|name"] == {"last_day": 4, "last_week": 5, "last_month": 6}
        assert snapshot["plain"] == {"last_day": 1, "last_week": 2, "last_month": 3}

    def test_backtick_in_name_survives(self):
        """A backtick inside a package name is escaped and read back."""
        stats = [_stat("tick`name", 7, 8, 9)]
        report = _render(stats)
        assert "| `tick\\`name` | 7 | 8 | 9 |" in report
        assert parse_report(report)["tick`name"] == {
            "last_day": 7,
            "last_week": 8,
            "last_month": 9,
        }

    def test_totals_only(self):
        body = "- **Total downloads this week**: 1,500\nSome prose\n"
        assert parse_report(body) == {
            TOTAL_KEY: {"last_day": 0, "last_week": 1500, "last_month": 0}
        }

    def test_table_only(self):
        body = (
            "| Package | Day | Week | Month |\n"
            "|---------|-----|------|-------|\n"
            "| `x` | 1 | 2 | 3 |\n"
        )
        assert parse_report(body) == {"x": {"last_day": 1, "last_week": 2, "last_month": 3}}

    def test_table_stops_at_blank_line(self):
        body = (
            "| Package | Day | Week | Month |\n"
            "|---------|-----|------|-------|\n"
            "| `x` | 1 | 2 | 3 |\n"
            "\n"
            "| `y` | 4 | 5 | 6 |\n"
        )
        assert list(parse_report(body)) == ["x"]

    def test_unparsable_cell_defaults_to_zero(self):
        body = (
            "| Package | Day | Week | Month |\n"
            "|---------|-----|------|-------|\n"
            "| `x` | n/a | 2 ↑ +1 (+100.0%) | ? |\n"
        )
        assert parse_report(body)["x"] == {"last_day": 0, "last_week": 2, "last_month": 0}

    def test_duplicate_rows_last_wins(self):
        body = (
            "| Package | Day | Week | Month |\n"
            "|---------|-----|------|-------|\n"
            "| `x` | 1 | 2 | 3 |\n"
            "| `x` | 7 | 8 | 9 |\n"
        )
        assert parse_report(body)["x"] == {"last_day": 7, "last_week": 8, "last_month": 9}

    def test_unrelated_text(self, caplog):
        """Text without any anchors gives an empty snapshot, logged as info."""
        caplog.set_level("INFO", logger="npmstats")
        assert parse_report("Nothing to see here.") == {}
        assert "No download totals found" in caplog.text

    def test_empty_body(self):
        assert parse_report("") == {}


class TestEndToEnd:
    """Render, parse the result, and render again against it."""

    def test_rerun_shows_no_change(self, sample_stats):
        first = _render(sample_stats)
        assert _table_rows(first) == ["| `a` | 32 | 210 | 812 |", "| `b` | 18 | 97 | 401 |"]

        second = _render(sample_stats, parse_report(first))

        assert "- **Total downloads today**: 50 (→ 0 (0.0%))" in second
        assert "- **Total downloads this week**: 307 (→ 0 (0.0%))" in second
        assert "- **Total downloads this month**: 1,213 (→ 0 (0.0%))" in second
        assert _table_rows(second) == [
            "| `a` | 32 → 0 (0.0%) | 210 → 0 (0.0%) | 812 → 0 (0.0%) |",
            "| `b` | 18 → 0 (0.0%) | 97 → 0 (0.0%) | 401 → 0 (0.0%) |",
        ]
        assert "↑" not in second and "↓" not in second
