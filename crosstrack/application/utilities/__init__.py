"""Shared utilities for application services."""
