"""HTTP API for triggers and reads."""
