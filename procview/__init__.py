"""Configuration, keyword search, colouring, terminal output and table views for ps-like process listings."""

__version__ = "0.1.0"

__all__ = ["config", "util", "style", "term_info", "view"]