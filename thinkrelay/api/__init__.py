"""HTTP API for the relay."""
