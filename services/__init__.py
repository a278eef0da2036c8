"""Booking services: scheduling engine, reservations and clients."""
