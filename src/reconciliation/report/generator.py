"""
Report generation from table run results.

Builds a run summary from the TableRunResults of one invocation plus
the difference records collected while it ran.
"""

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from ..models import DifferenceKind, DifferenceRecord, RunState, TableRunResult


class ReportStatus:
    """Constants for overall and per-table report status."""

    PASS = "PASS"
    FAIL = "FAIL"
    ERROR = "ERROR"
    NO_DATA = "NO_DATA"

    MATCH = "MATCH"
    MISMATCH = "MISMATCH"


def format_timestamp(timestamp: datetime) -> str:
    """ISO 8601 timestamp for reports."""
    return timestamp.isoformat()


def _table_entry(result: TableRunResult) -> dict[str, Any]:
    if result.state is not RunState.DONE:
        status = ReportStatus.ERROR
    elif result.difference_count:
        status = ReportStatus.MISMATCH
    else:
        status = ReportStatus.MATCH

    entry = result.to_dict()
    entry["status"] = status
    entry["severity"] = _calculate_severity(
        max(result.rows_primary, result.rows_secondary), result.difference_count
    )
    return entry


def generate_report(
    run_results: Sequence[TableRunResult],
    records: Iterable[DifferenceRecord] = (),
) -> dict[str, Any]:
    """
    Generate a reconciliation report.

    Args:
        run_results: One result per table attempted
        records: Difference records emitted during the run

    Returns:
        Dictionary containing:
        - status: PASS, FAIL, ERROR or NO_DATA
        - total_tables, tables_matched, tables_mismatched, tables_failed
        - total_differences and differences_by_kind
        - tables: per-table entries (state, pages, rows, counts, errors)
        - differences: the records as dictionaries (a sample when the
          collecting sink was capped)
        - differences_omitted: differences counted but not listed
        - summary and recommendations
        - timestamp
    """
    timestamp = format_timestamp(datetime.now(UTC))
    differences = [record.to_dict() for record in records]

    if not run_results:
        return {
            "status": ReportStatus.NO_DATA,
            "total_tables": 0,
            "tables_matched": 0,
            "tables_mismatched": 0,
            "tables_failed": 0,
            "total_differences": 0,
            "differences_by_kind": {},
            "tables": [],
            "differences": differences,
            "differences_omitted": 0,
            "summary": "No tables were compared",
            "recommendations": [],
            "timestamp": timestamp,
        }

    tables = [_table_entry(result) for result in run_results]
    tables_matched = sum(1 for t in tables if t["status"] == ReportStatus.MATCH)
    tables_mismatched = sum(1 for t in tables if t["status"] == ReportStatus.MISMATCH)
    tables_failed = sum(1 for t in tables if t["status"] == ReportStatus.ERROR)

    differences_by_kind: dict[str, int] = {}
    for result in run_results:
        for kind, count in result.differences.items():
            differences_by_kind[kind] = differences_by_kind.get(kind, 0) + count
    total_differences = sum(differences_by_kind.values())

    if tables_failed:
        status = ReportStatus.ERROR
    elif tables_mismatched:
        status = ReportStatus.FAIL
    else:
        status = ReportStatus.PASS

    return {
        "status": status,
        "total_tables": len(tables),
        "tables_matched": tables_matched,
        "tables_mismatched": tables_mismatched,
        "tables_failed": tables_failed,
        "total_differences": total_differences,
        "differences_by_kind": differences_by_kind,
        "tables": tables,
        "differences": differences,
        "differences_omitted": max(total_differences - len(differences), 0),
        "summary": _generate_summary(len(tables), tables_matched, tables_mismatched, tables_failed),
        "recommendations": _generate_recommendations(tables, differences_by_kind),
        "timestamp": timestamp,
    }


def _calculate_severity(row_count: int, difference_count: int) -> str:
    """
    Severity from the share of rows with differences.

    Returns:
        LOW, MEDIUM, HIGH or CRITICAL
    """
    if difference_count == 0:
        return "LOW"
    if row_count == 0:
        return "CRITICAL"

    percentage_diff = (difference_count / row_count) * 100

    if percentage_diff < 0.1:
        return "LOW"
    elif percentage_diff < 1.0:
        return "MEDIUM"
    elif percentage_diff < 10.0:
        return "HIGH"
    else:
        return "CRITICAL"


def _generate_summary(
    total_tables: int, tables_matched: int, tables_mismatched: int, tables_failed: int
) -> str:
    if tables_failed == 0 and tables_mismatched == 0:
        return f"All {total_tables} tables reconciled successfully. No differences found."

    parts = [f"{tables_matched} of {total_tables} tables matched"]
    if tables_mismatched:
        parts.append(f"{tables_mismatched} with differences")
    if tables_failed:
        parts.append(f"{tables_failed} could not be compared")
    return ", ".join(parts) + "."


def _generate_recommendations(
    tables: list[dict[str, Any]], differences_by_kind: dict[str, int]
) -> list[str]:
    recommendations = []

    failed = [t for t in tables if t["status"] == ReportStatus.ERROR]
    for entry in failed:
        where = f" at page {entry['failed_page']}" if entry.get("failed_page") is not None else ""
        recommendations.append(
            f"Table {entry['table']} aborted{where} ({entry['error_type']}): "
            f"check source connectivity and dialect configuration, then rerun with --resume"
        )

    if differences_by_kind.get(DifferenceKind.MISSING_ON_SECONDARY.value):
        recommendations.append(
            "Rows are missing on the secondary: check replication lag or failed writes to the replica"
        )
    if differences_by_kind.get(DifferenceKind.MISSING_ON_PRIMARY.value):
        recommendations.append(
            "Rows exist only on the secondary: check for deletes that did not replicate "
            "or writes made directly to the replica"
        )
    if differences_by_kind.get(DifferenceKind.FIELD_MISMATCH.value):
        recommendations.append(
            "Field values differ: compare column types on both sides and look for "
            "updates that did not replicate"
        )
    if differences_by_kind.get(DifferenceKind.DUPLICATE_KEY.value):
        recommendations.append(
            "Duplicate identity values found: the configured identity column is not unique"
        )

    critical = [t["table"] for t in tables if t["severity"] == "CRITICAL" and t["difference_count"]]
    if critical:
        recommendations.append(
            f"CRITICAL: investigate {', '.join(critical)} immediately"
        )

    return recommendations
