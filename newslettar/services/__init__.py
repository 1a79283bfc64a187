"""Source clients and pipeline stages."""
