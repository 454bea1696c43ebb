"""Competitor Watcher: nearby competitor search and AI competitive-analysis reports."""

__version__ = "0.1.0"
