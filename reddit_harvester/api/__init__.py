"""HTTP API for the Reddit harvester."""
