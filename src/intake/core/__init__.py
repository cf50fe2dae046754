"""Core: errors, structured logging, settings."""
