"""Infrastructure: database engine/session management and logging."""
