"""External integrations of the booking core."""
