"""gha — proxy gh commands with GitHub App authentication."""

__version__ = "0.3.0"
