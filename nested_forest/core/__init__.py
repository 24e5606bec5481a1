"""Core package: settings, database layer and models."""
