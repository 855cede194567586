"""OpenHedge - institutional ownership (13F) browser for the terminal."""

__version__ = "0.1.0"
