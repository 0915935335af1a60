"""Infrastructure adapters (database, notifications)."""
