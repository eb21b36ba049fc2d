"""Keyscope core plumbing: audio I/O, settings, logging and errors."""

__version__ = "0.1.0"
