"""Status reporting for a running Pulsar compose stack."""

from .logscan import ErrorLine, ErrorLineScanner
from .report import MonitorReport, collect_report, recommendations, render_report

__all__ = [
    "ErrorLine",
    "ErrorLineScanner",
    "MonitorReport",
    "collect_report",
    "recommendations",
    "render_report",
]
