"""Operational scripts, run as `python -m scentmatch.scripts.<name>`."""
