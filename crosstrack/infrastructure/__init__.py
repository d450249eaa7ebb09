"""Infrastructure layer - platform connectors and the command line."""
