"""Report rendering (text and JSON)."""

from gib.report.text import (
    estimate_to_json,
    format_estimate_text,
    format_report_text,
    report_to_json,
)

__all__ = ["estimate_to_json", "format_estimate_text", "format_report_text", "report_to_json"]
