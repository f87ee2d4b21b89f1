"""Live staff notifications."""
