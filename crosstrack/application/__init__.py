"""Application layer - orchestrates resolution across platforms."""
