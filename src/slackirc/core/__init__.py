"""Shared constants, errors and hashing helpers."""
