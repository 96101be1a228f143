"""Reporting utilities for rpropnet."""

from .metrics import CsvSink, JsonlSink, LifesignPrinter
from .summary import format_summary, result_table, write_summary

__all__ = [
    "CsvSink",
    "JsonlSink",
    "LifesignPrinter",
    "format_summary",
    "result_table",
    "write_summary",
]
