"""Packaged JSON schemas for tix."""
