"""Command-line interface for intake-core (``intake``)."""
