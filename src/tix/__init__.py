"""tix: Notion ticket companion CLI."""

__version__ = "0.3.0"
