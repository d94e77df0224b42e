"""Presentation layer - human-friendly formatting."""

from .human_formatter import format_plan, format_report, format_graph, format_state

__all__ = ["format_plan", "format_report", "format_graph", "format_state"]
