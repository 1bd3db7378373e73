"""Task assistant: natural-language task management."""

__version__ = "0.1.0"
