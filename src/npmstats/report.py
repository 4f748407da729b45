"""Markdown report rendering and parsing.

The rendered report doubles as the only record of previous counts: the next
run parses it back to compute growth. Both directions are built from the
format definitions below so that whatever is rendered can be read again.
"""

import logging
import re
from datetime import datetime
from zoneinfo import ZoneInfo

from .types import PERIODS, TOTAL_KEY, PackageStat, PeriodCounts, Snapshot
from .utils import calculate_growth, format_count, format_growth

logger = logging.getLogger("npmstats")

# -----------------------------------------------------------------------------
# Report Format
# -----------------------------------------------------------------------------

TITLE = "## 📦 npm downloads report ({date})"
GENERATED_LINE = "> Generated at {timestamp}"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %Z"
SUMMARY_HEADING = "### 📊 Summary"
DETAILS_HEADING = "### 📈 Details"
FOOTER = "*Generated by npmstats*"
FOOTER_WITH_REPO = "*Generated by [npmstats](https://github.com/{repository})*"

# Labels of the aggregate lines, e.g. "- **Total downloads today**: 1,234"
TOTAL_LABELS = {
    "last_day": "Total downloads today",
    "last_week": "Total downloads this week",
    "last_month": "Total downloads this month",
}

TABLE_COLUMNS = ("Package", "Day", "Week", "Month")

# Cell delimiter; a literal pipe inside a cell is written as "\|"
_CELL_SPLIT = re.compile(r"(?<!\\)\|")
_LEADING_COUNT = re.compile(r"\d[\d,]*")

DEFAULT_TIMEZONE = "UTC"


def _total_line(period: str, value: str) -> str:
    return f"- **{TOTAL_LABELS[period]}**: {value}"


def _total_pattern(period: str) -> re.Pattern[str]:
    prefix = re.escape(_total_line(period, ""))
    return re.compile(rf"^{prefix}(\d[\d,]*)", re.MULTILINE)


_TOTAL_PATTERNS = {period: _total_pattern(period) for period in PERIODS}


def _table_row(cells: list[str]) -> str:
    return "| " + " | ".join(cells) + " |"


TABLE_HEADER = _table_row(list(TABLE_COLUMNS))
TABLE_SEPARATOR = "|" + "|".join("-" * (len(c) + 2) for c in TABLE_COLUMNS) + "|"


def _name_cell(name: str) -> str:
    return "`" + name.replace("|", "\\|").replace("`", "\\`") + "`"


def _parse_name_cell(cell: str) -> str | None:
    cell = cell.strip()
    if len(cell) < 3 or not (cell.startswith("`") and cell.endswith("`")):
        return None
    return cell[1:-1].replace("\\`", "`").replace("\\|", "|")


def _split_row(line: str) -> list[str] | None:
    """Split a table row into its cells, or None if it is not a row."""
    parts = _CELL_SPLIT.split(line.strip())
    if len(parts) < 3 or parts[0].strip() or parts[-1].strip():
        return None
    return parts[1:-1]


def _parse_count(cell: str) -> int:
    """Leading integer of a cell, ignoring any growth annotation after it."""
    match = _LEADING_COUNT.match(cell.strip())
    if not match:
        return 0
    try:
        return int(match.group().replace(",", ""))
    except ValueError:
        return 0


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------


def sum_stats(stats: list[PackageStat]) -> PeriodCounts:
    """Element-wise sum of the period counts across all packages."""
    return {
        "last_day": sum(s["last_day"] for s in stats),
        "last_week": sum(s["last_week"] for s in stats),
        "last_month": sum(s["last_month"] for s in stats),
    }


def _count_cell(current: int, previous: PeriodCounts | None, period: str) -> str:
    text = format_count(current)
    if previous is not None:
        text += " " + format_growth(calculate_growth(current, previous.get(period)))
    return text


def generate_report(
    stats: list[PackageStat],
    date: str,
    previous: Snapshot | None = None,
    generated_at: datetime | None = None,
    timezone: str = DEFAULT_TIMEZONE,
    repository: str | None = None,
) -> str:
    """Generate the Markdown download report.

    Args:
        stats: Freshly fetched stats, one per package.
        date: Report date, embedded verbatim in the title.
        previous: Snapshot parsed from the previous report. An empty snapshot
            is treated as no snapshot.
        generated_at: Generation time (default: now in ``timezone``).
        timezone: IANA timezone name used for the generation timestamp.
        repository: Optional ``owner/repo`` linked from the footer.

    Returns:
        The report text, readable again by :func:`parse_report`.
    """
    if not previous:
        previous = None

    if generated_at is None:
        generated_at = datetime.now(ZoneInfo(timezone))

    totals = sum_stats(stats)
    # sorted() is stable, so packages with equal weekly counts keep input order
    sorted_stats = sorted(stats, key=lambda s: s["last_week"], reverse=True)

    lines = [
        TITLE.format(date=date),
        "",
        GENERATED_LINE.format(timestamp=generated_at.strftime(TIMESTAMP_FORMAT)),
        "",
        SUMMARY_HEADING,
        "",
    ]

    previous_total = previous.get(TOTAL_KEY, {}) if previous is not None else None
    for period in PERIODS:
        value = format_count(totals[period])
        if previous_total is not None:
            growth = calculate_growth(totals[period], previous_total.get(period))
            value += f" ({format_growth(growth)})"
        lines.append(_total_line(period, value))

    lines += ["", DETAILS_HEADING, "", TABLE_HEADER, TABLE_SEPARATOR]

    for stat in sorted_stats:
        prev = previous.get(stat["name"]) if previous is not None else None
        cells = [_name_cell(stat["name"])]
        cells += [_count_cell(stat[period], prev, period) for period in PERIODS]
        lines.append(_table_row(cells))

    lines += ["", "---", ""]
    if repository:
        lines.append(FOOTER_WITH_REPO.format(repository=repository))
    else:
        lines.append(FOOTER)

    return "\n".join(lines)


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------


def _parse_totals(body: str) -> PeriodCounts | None:
    matches = {period: _TOTAL_PATTERNS[period].search(body) for period in PERIODS}
    if not any(matches.values()):
        return None

    totals: PeriodCounts = {"last_day": 0, "last_week": 0, "last_month": 0}
    for period, match in matches.items():
        if match:
            totals[period] = _parse_count(match.group(1))
    return totals


def _parse_table(body: str) -> Snapshot:
    start = body.find(TABLE_HEADER)
    if start == -1:
        logger.info("No package table found in previous report")
        return {}

    end = body.find("\n\n", start)
    table = body[start : end if end != -1 else len(body)]

    snapshot: Snapshot = {}
    for line in table.splitlines()[1:]:
        cells = _split_row(line)
        if cells is None or len(cells) != len(TABLE_COLUMNS):
            continue
        name = _parse_name_cell(cells[0])
        if name is None:
            continue
        snapshot[name] = {
            "last_day": _parse_count(cells[1]),
            "last_week": _parse_count(cells[2]),
            "last_month": _parse_count(cells[3]),
        }
    return snapshot


def parse_report(body: str) -> Snapshot:
    """Recover per-package and aggregate counts from a rendered report.

    Missing sections are skipped, so the result may hold only the aggregate
    entry (under ``TOTAL_KEY``), only packages, or nothing at all.
    """
    snapshot: Snapshot = {}

    totals = _parse_totals(body)
    if totals is not None:
        snapshot[TOTAL_KEY] = totals
    else:
        logger.info("No download totals found in previous report")

    snapshot.update(_parse_table(body))
    return snapshot
