"""JSON web service for the Dot Portal, with database schema migrations."""

__version__ = "0.1.0"

__all__ = ["__version__"]