"""Infrastructure adapters (logging, realtime)."""
