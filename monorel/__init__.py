"""Release tooling for multi-package repositories."""

__version__ = "0.3.0"
