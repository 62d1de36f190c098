"""Repository configuration (settings file loading and ordering)."""
