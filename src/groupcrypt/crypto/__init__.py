"""Thin wrappers over the ``cryptography`` primitives used by the protocol."""
