"""CLI argument parsing and command implementations."""

import argparse
import logging
from datetime import date as Date
from datetime import datetime, timezone
from pathlib import Path

import requests
from tabulate import tabulate

from .api import fetch_all_package_stats, fetch_user_packages
from .config import Config, load_config, resolve_token
from .exceptions import ConfigError, NpmStatsError
from .export import export_csv, export_json, export_markdown
from .issues import GitHubIssues
from .logging import setup_logging
from .report import generate_report, parse_report
from .types import PackageStat, Snapshot

logger = logging.getLogger("npmstats")


def today() -> str:
    """Current UTC date as YYYY-MM-DD."""
    return datetime.now(timezone.utc).date().isoformat()


def _iso_date(value: str) -> str:
    try:
        return Date.fromisoformat(value).isoformat()
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid date '{value}' (use YYYY-MM-DD)") from e


def resolve_packages(args: argparse.Namespace, config: Config) -> list[str]:
    """Packages to report on: the configured list, or those of the user."""
    if config.packages:
        return list(config.packages)

    username = args.username or config.username
    if not username:
        raise ConfigError(
            "No npm username given. Use --username, NPMSTATS_USERNAME or "
            "'username' in the config file."
        )

    logger.info("Fetching packages for %s...", username)
    packages = fetch_user_packages(username, timeout=config.timeout)
    logger.info("Found %d packages: %s", len(packages), ", ".join(packages))
    return packages


def fetch_stats(packages: list[str], config: Config) -> list[PackageStat]:
    """Fetch download stats for ``packages`` using the configured batching."""
    logger.info("Fetching download statistics...")
    with requests.Session() as session:
        stats = fetch_all_package_stats(
            packages,
            batch_size=config.batch_size,
            batch_pause=config.batch_pause,
            session=session,
            timeout=config.timeout,
        )

    for stat in stats:
        if stat.get("missing"):
            logger.warning(
                "Counts unavailable for %s (%s), reported as 0",
                stat["name"],
                ", ".join(stat["missing"]),
            )
    logger.info("Fetched stats for %d packages", len(stats))
    return stats


def _write_output(output: str, path: str | None) -> None:
    if path:
        Path(path).write_text(output + "\n", encoding="utf-8")
        logger.info("Wrote %s", path)
    else:
        print(output)


def cmd_packages(args: argparse.Namespace, config: Config) -> int:
    """Packages command: list the packages that would be reported."""
    packages = resolve_packages(args, config)
    if not packages:
        logger.warning("No packages found for this user")
        return 0

    for name in packages:
        print(name)
    return 0


def cmd_fetch(args: argparse.Namespace, config: Config) -> int:
    """Fetch command: show current download stats without growth."""
    packages = resolve_packages(args, config)
    if not packages:
        logger.warning("No packages found for this user")
        return 0

    stats = sorted(fetch_stats(packages, config), key=lambda s: s["last_week"], reverse=True)

    if args.format == "csv":
        output = export_csv(stats)
    elif args.format == "json":
        output = export_json(stats)
    elif args.format in ("markdown", "md"):
        output = export_markdown(stats)
    else:
        rows = [
            [i, s["name"], f"{s['last_day']:,}", f"{s['last_week']:,}", f"{s['last_month']:,}"]
            for i, s in enumerate(stats, 1)
        ]
        headers = ["#", "Package", "Day", "Week", "Month"]
        output = tabulate(rows, headers=headers, tablefmt="simple")

    _write_output(output, args.output)
    return 0


def cmd_report(args: argparse.Namespace, config: Config) -> int:
    """Report command: render the Markdown report locally."""
    previous: Snapshot | None = None
    if args.previous:
        try:
            previous = parse_report(Path(args.previous).read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Cannot read previous report: {e}") from e
        if not previous:
            logger.info("No previous stats found in %s", args.previous)

    packages = resolve_packages(args, config)
    if not packages:
        logger.warning("No packages found for this user")
        return 0

    stats = fetch_stats(packages, config)
    report = generate_report(
        stats,
        args.date or today(),
        previous,
        timezone=config.timezone,
        repository=config.repository,
    )
    _write_output(report, args.output)
    return 0


def cmd_publish(args: argparse.Namespace, config: Config) -> int:
    """Publish command: fetch, compare with the last report and write the issue."""
    packages = resolve_packages(args, config)
    if not packages:
        logger.warning("No packages found for this user")
        return 0

    stats = fetch_stats(packages, config)

    token = resolve_token(args.token, config)
    if not token:
        logger.error("GITHUB_TOKEN is required")
        return 1
    if not config.repository:
        logger.error("No repository given. Set GITHUB_REPOSITORY or 'repository'.")
        return 1

    issues = GitHubIssues(config.repository, token, timeout=config.timeout)
    date = args.date or today()

    logger.info("Fetching previous stats for comparison...")
    previous = issues.find_previous_snapshot(date)
    if previous:
        logger.info("Found previous stats for comparison")
    else:
        logger.info("No previous stats found (this might be the first run)")

    report = generate_report(
        stats, date, previous, timezone=config.timezone, repository=config.repository
    )
    logger.info("Report generated")

    if args.dry_run:
        print(report)
        return 0

    number = issues.create_or_update_report(report, date)
    logger.info("Successfully created/updated issue #%d", number)
    print(number)
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Report npm download statistics for a publisher's packages.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        help="YAML config file (default: ./npmstats.yml or ~/.npmstats/config.yml)",
    )
    parser.add_argument(
        "-u",
        "--username",
        help="npm user whose packages are reported (overrides config)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug messages",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only show warnings and errors",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # packages command
    packages_parser = subparsers.add_parser(
        "packages",
        help="List the packages that would be reported",
    )
    packages_parser.set_defaults(func=cmd_packages)

    # fetch command
    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Fetch and display current download statistics",
    )
    fetch_parser.add_argument(
        "-f",
        "--format",
        choices=["table", "csv", "json", "markdown", "md"],
        default="table",
        help="Output format (default: table)",
    )
    fetch_parser.add_argument(
        "-o",
        "--output",
        help="Output file (default: stdout)",
    )
    fetch_parser.set_defaults(func=cmd_fetch)

    # report command
    report_parser = subparsers.add_parser(
        "report",
        help="Render the Markdown report",
    )
    report_parser.add_argument(
        "-p",
        "--previous",
        help="Previous report file to compute growth against",
    )
    report_parser.add_argument(
        "--date",
        type=_iso_date,
        help="Report date as YYYY-MM-DD (default: today, UTC)",
    )
    report_parser.add_argument(
        "-o",
        "--output",
        help="Output file (default: stdout)",
    )
    report_parser.set_defaults(func=cmd_report)

    # publish command
    publish_parser = subparsers.add_parser(
        "publish",
        help="Fetch stats and create or update today's report issue",
    )
    publish_parser.add_argument(
        "--token",
        help="GitHub token (default: GITHUB_TOKEN)",
    )
    publish_parser.add_argument(
        "--date",
        type=_iso_date,
        help="Report date as YYYY-MM-DD (default: today, UTC)",
    )
    publish_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the report instead of writing the issue",
    )
    publish_parser.set_defaults(func=cmd_publish)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    setup_logging(verbose=args.verbose, quiet=args.quiet)

    try:
        config = load_config(args.config)
        return args.func(args, config)
    except NpmStatsError as e:
        logger.error("%s", e)
        return 1
