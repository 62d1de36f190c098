"""Shared helpers (HTTP, logging) used across registry and install modules."""
