"""Common utilities shared by the planner services."""

__all__ = [
    "settings",
    "setup_otel",
    "setup_logging",
    "setup_metrics",
]
