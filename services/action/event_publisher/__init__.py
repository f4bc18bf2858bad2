"""Event Publisher: fan-out of entity change events to subscribers."""
