"""Switch a browser to a configured URL from a Stream Deck button."""

__version__ = "1.0.0"
