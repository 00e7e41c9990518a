"""
Report formatting and export utilities.

JSON keeps the whole report, CSV writes one line per difference, and the
console format is a human-readable summary.
"""

import csv
import json
from typing import Any

CSV_HEADER = ["Table", "Kind", "Id", "Field", "Primary Value", "Secondary Value", "Side"]


def export_report_json(report: dict[str, Any], output_path: str) -> None:
    """
    Export report to JSON file

    Args:
        report: Report dictionary
        output_path: Path to output file
    """
    with open(output_path, 'w') as f:
        json.dump(report, f, indent=2, default=str)


def export_report_csv(report: dict[str, Any], output_path: str) -> None:
    """
    Export the report's differences to CSV, one row per difference

    Args:
        report: Report dictionary
        output_path: Path to output file
    """
    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)

        for difference in report.get("differences", []):
            writer.writerow([
                difference.get("table", ""),
                difference.get("kind", ""),
                difference.get("id", ""),
                difference.get("field", ""),
                difference.get("primary_value", ""),
                difference.get("secondary_value", ""),
                difference.get("side", ""),
            ])


def format_report_console(report: dict[str, Any], max_differences: int = 50) -> str:
    """
    Format report for console output

    Args:
        report: Report dictionary
        max_differences: Differences listed before the rest are summarized

    Returns:
        Formatted string for console display
    """
    lines = []

    lines.append("=" * 80)
    lines.append("RECONCILIATION REPORT")
    lines.append("=" * 80)
    lines.append(f"Status: {report['status']}")
    lines.append(f"Timestamp: {report['timestamp']}")
    lines.append(f"Total Tables: {report['total_tables']}")
    lines.append(f"Tables Matched: {report['tables_matched']}")
    lines.append(f"Tables Mismatched: {report['tables_mismatched']}")
    lines.append(f"Tables Failed: {report.get('tables_failed', 0)}")
    lines.append(f"Total Differences: {report.get('total_differences', 0):,}")
    lines.append("")

    lines.append("SUMMARY")
    lines.append("-" * 80)
    lines.append(report['summary'])
    lines.append("")

    if report.get('tables'):
        lines.append("TABLES")
        lines.append("-" * 80)
        for table in report['tables']:
            lines.append(
                f"{table['table']}: {table['status']} "
                f"(pages={table['pages_compared']}, "
                f"primary_rows={table['rows_primary']:,}, "
                f"secondary_rows={table['rows_secondary']:,}, "
                f"differences={table['difference_count']:,})"
            )
            for kind, count in sorted(table.get('differences', {}).items()):
                lines.append(f"  {kind}: {count:,}")
            if table.get('error_message'):
                lines.append(f"  Error: {table['error_type']}: {table['error_message']}")
        lines.append("")

    differences = report.get('differences', [])
    if differences:
        lines.append("DIFFERENCES")
        lines.append("-" * 80)
        for diff in differences[:max_differences]:
            line = f"{diff['table']} id={diff['id']} {diff['kind']}"
            if 'field' in diff:
                line += (
                    f" field={diff['field']} primary={diff['primary_value']!r}"
                    f" secondary={diff['secondary_value']!r}"
                )
            elif 'side' in diff:
                line += f" side={diff['side']}"
            lines.append(line)
        shown = min(len(differences), max_differences)
        remaining = max(report.get("total_differences", 0), len(differences)) - shown
        if remaining > 0:
            lines.append(f"... and {remaining:,} more")
        lines.append("")

    if report.get('recommendations'):
        lines.append("RECOMMENDATIONS")
        lines.append("-" * 80)
        for i, rec in enumerate(report['recommendations'], 1):
            lines.append(f"{i}. {rec}")
        lines.append("")

    lines.append("=" * 80)

    return "\n".join(lines)
