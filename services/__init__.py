"""Clients for the external services the diagnostics exercise."""
