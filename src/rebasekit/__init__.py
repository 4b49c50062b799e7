"""AI-assisted conflict resolution for git rebases."""

__version__ = "0.1.0"
