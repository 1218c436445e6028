"""Batching, flattening, filtering and aggregation of harvested content."""
