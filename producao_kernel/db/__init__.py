"""Database infrastructure: declarative base, engine and session scope."""
