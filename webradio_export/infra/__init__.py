"""Infra layer utilities (SQLite storage, reporting sinks)."""

from .reporting import ReportingSink, SQLiteReportingSink
from .storage import SQLiteManager

__all__ = ["ReportingSink", "SQLiteManager", "SQLiteReportingSink"]
