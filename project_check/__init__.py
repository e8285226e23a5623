"""Sequential project verification runner (test, check, fmt, lint)."""

__version__ = "0.1.0"
