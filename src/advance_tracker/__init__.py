"""Cash advance and expense tracking for field project teams."""

__version__ = "0.1.0"
