"""webinit -- scaffold a Go + htmx + PostgreSQL web project."""

__version__ = "0.1.0"
