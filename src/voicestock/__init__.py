"""Voice-driven inventory command interpretation service."""

__version__ = "0.1.0"
