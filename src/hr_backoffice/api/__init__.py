"""HTTP API for the HR back-office."""
