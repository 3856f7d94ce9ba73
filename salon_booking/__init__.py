"""Appointment booking backend: availability and double-booking-safe reservations."""

__version__ = "1.0.0"
