"""Envelope wire format and the exception hierarchy."""
