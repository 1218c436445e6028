"""
Reddit Harvester - multi-source collection of Reddit posts and comments.

This package harvests research-community content through a chain of fallback
retrieval strategies and produces a flat, noise-filtered corpus together with
per-community reliability statistics.
"""

__version__ = "0.1.0"
