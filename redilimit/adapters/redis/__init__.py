"""Redis store adapters."""
