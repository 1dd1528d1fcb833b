"""SQLAlchemy base and engine/session management for the read-only store adapters."""
