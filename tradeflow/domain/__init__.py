"""Domain layer: events, interfaces, exceptions and engine services."""
