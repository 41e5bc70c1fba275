"""Dashboard module for web-based monitoring."""

from fundarb.dashboard.server import create_app
from fundarb.dashboard.view import render_dashboard


__all__ = [
    "create_app",
    "render_dashboard",
]
