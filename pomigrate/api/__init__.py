"""HTTP API for running imports."""
