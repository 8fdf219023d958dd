"""Foundational pieces: configuration and logging setup."""
