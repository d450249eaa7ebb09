"""crosstrack domain layer - pure resolution logic with no I/O."""
