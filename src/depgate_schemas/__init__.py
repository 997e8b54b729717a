"""Packaged JSON Schemas for depgate documents."""
