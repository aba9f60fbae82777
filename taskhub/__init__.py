"""Task, project and user tracking with event-driven assignment."""

__version__ = "0.1.0"
