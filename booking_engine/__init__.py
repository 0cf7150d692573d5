"""Booking and availability engine for an event marketplace."""

__version__ = "0.1.0"
