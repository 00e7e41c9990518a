"""
Difference sinks and reconciliation report generation.

Sinks receive DifferenceRecords while tables are compared; the generator
and formatters turn a finished run into JSON, CSV or console output.
"""

from .formatters import export_report_csv, export_report_json, format_report_console
from .generator import ReportStatus, format_timestamp, generate_report
from .sinks import (
    CollectingReportSink,
    CompositeReportSink,
    JsonLinesReportSink,
    LoggingReportSink,
    ReportSink,
)

__all__ = [
    'ReportSink',
    'LoggingReportSink',
    'CollectingReportSink',
    'JsonLinesReportSink',
    'CompositeReportSink',
    'ReportStatus',
    'generate_report',
    'format_timestamp',
    'export_report_json',
    'export_report_csv',
    'format_report_console',
]
