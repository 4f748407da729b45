"""Export functions for various formats."""

import csv
import io
import json
from datetime import datetime

from .types import PackageStat


def export_csv(stats: list[PackageStat], output: io.StringIO | None = None) -> str:
    """Export stats to CSV format."""
    if output is None:
        output = io.StringIO()

    writer = csv.writer(output)
    writer.writerow(["rank", "package_name", "last_day", "last_week", "last_month", "missing"])

    for i, s in enumerate(stats, 1):
        writer.writerow(
            [
                i,
                s["name"],
                s["last_day"],
                s["last_week"],
                s["last_month"],
                ";".join(s.get("missing", [])),
            ]
        )

    return output.getvalue()


def export_json(stats: list[PackageStat]) -> str:
    """Export stats to JSON format."""
    export_data = {
        "generated": datetime.now().isoformat(),
        "packages": [
            {
                "rank": i,
                "name": s["name"],
                "last_day": s["last_day"],
                "last_week": s["last_week"],
                "last_month": s["last_month"],
                "missing": s.get("missing", []),
            }
            for i, s in enumerate(stats, 1)
        ],
    }
    return json.dumps(export_data, indent=2)


def export_markdown(stats: list[PackageStat]) -> str:
    """Export stats to a plain Markdown table (no growth annotations)."""
    lines = [
        "| Rank | Package | Day | Week | Month |",
        "|------|---------|----:|-----:|------:|",
    ]

    for i, s in enumerate(stats, 1):
        lines.append(
            f"| {i} | {s['name']} | {s['last_day']:,} | "
            f"{s['last_week']:,} | {s['last_month']:,} |"
        )

    return "\n".join(lines)
