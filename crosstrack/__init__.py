"""crosstrack - cross-platform track resolution and verification."""

__version__ = "0.1.0"
